from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

import numpy as np
import pandas as pd

from bidcurves.enums import MarketSideEnum
from bidcurves.validation import BidColumns
from bidcurves.bid_data_handling.calendar_attributes import CurveKey
from bidcurves.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class BidLadder:
    """Bids of one (date, hour) unit in the order they were supplied.

    The cumulative volume at rank k is the running sum of quantities up to and
    including rank k; its last value is the maximum called volume (Vmax).
    Supply ladders are expected in ascending price order. The ladder never
    reorders its bids; use is_price_monotonic to detect unexpected orderings.
    """
    key: CurveKey
    prices: np.ndarray
    quantities: np.ndarray
    zone_clearing_price: float = np.nan
    market_side: MarketSideEnum = MarketSideEnum.SUPPLY

    def __post_init__(self):
        prices = np.asarray(self.prices, dtype=float)
        quantities = np.asarray(self.quantities, dtype=float)
        if prices.shape != quantities.shape or prices.ndim != 1:
            raise ValueError(
                f'prices and quantities must be 1d arrays of equal length, '
                f'got {prices.shape} and {quantities.shape} for {self.key}'
            )
        prices.setflags(write=False)
        quantities.setflags(write=False)
        object.__setattr__(self, 'prices', prices)
        object.__setattr__(self, 'quantities', quantities)

    @property
    def num_bids(self) -> int:
        return len(self.prices)

    @property
    def is_empty(self) -> bool:
        return self.num_bids == 0

    @property
    def cumulative_volumes(self) -> np.ndarray:
        return np.cumsum(self.quantities)

    @property
    def max_volume(self) -> float:
        if self.is_empty:
            return 0.0
        return float(self.cumulative_volumes[-1])

    @property
    def is_price_monotonic(self) -> bool:
        """Ascending prices for supply ladders, descending for demand ladders."""
        if self.num_bids < 2:
            return True
        steps = np.diff(self.prices)
        if self.market_side is MarketSideEnum.SUPPLY:
            return bool((steps >= 0).all())
        return bool((steps <= 0).all())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            BidColumns.PRICE: self.prices,
            BidColumns.QUANTITY: self.quantities,
            'cumulative_volume': self.cumulative_volumes,
        })

    def __repr__(self) -> str:
        return f"BidLadder(key={self.key}, num_bids={self.num_bids}, max_volume={self.max_volume})"


class BidCurveExtractor:
    """Splits a bid dataset into one BidLadder per (date, hour).

    Rows keep their order within each unit, so a supply dataset has to be
    delivered sorted by ascending price per unit. Keys that are known to exist
    in the raw data (e.g. before filtering) can be passed as known_keys; they
    are returned as empty ladders if no bid survived.

    Example:

        >>> extractor = BidCurveExtractor(filtered_df, MarketSideEnum.SUPPLY, known_keys=raw_keys)
        >>> ladder = extractor.get_ladder(CurveKey.from_values('2018-01-01', 12))
        >>> ladder.max_volume
    """
    def __init__(
            self,
            bid_df: pd.DataFrame,
            market_side: MarketSideEnum = MarketSideEnum.SUPPLY,
            known_keys: Iterable[CurveKey] = None,
    ):
        self._bid_df = bid_df
        self.market_side = market_side
        self._positions = self._group_positions(bid_df)
        keys = set(self._positions)
        if known_keys is not None:
            keys.update(known_keys)
        self._keys = sorted(keys)

    @staticmethod
    def get_keys(bid_df: pd.DataFrame) -> list[CurveKey]:
        return sorted(BidCurveExtractor._group_positions(bid_df))

    @staticmethod
    def _group_positions(bid_df: pd.DataFrame) -> dict[CurveKey, np.ndarray]:
        if bid_df.empty:
            return {}
        dates = pd.to_datetime(bid_df[BidColumns.DATE]).dt.normalize()
        hours = bid_df[BidColumns.HOUR].astype(int)
        grouped = pd.Series(np.arange(len(bid_df)), index=bid_df.index).groupby(
            [dates.to_numpy(), hours.to_numpy()], sort=False
        )
        return {
            CurveKey.from_values(date, hour): np.asarray(positions)
            for (date, hour), positions in grouped.indices.items()
        }

    @property
    def keys(self) -> list[CurveKey]:
        return list(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: CurveKey) -> bool:
        return key in self._positions or key in self._keys

    def get_ladder(self, key: CurveKey) -> BidLadder:
        if key not in self:
            raise KeyError(f"No bids known for {key}")

        positions = self._positions.get(key)
        if positions is None:
            return BidLadder(key, np.array([]), np.array([]), market_side=self.market_side)

        rows = self._bid_df.iloc[positions]
        clearing_prices = rows[BidColumns.ZONE_CLEARING_PRICE].unique()
        if len(clearing_prices) > 1:
            logger.warning(f"{key}: {len(clearing_prices)} different zone clearing prices, using the first")

        ladder = BidLadder(
            key=key,
            prices=rows[BidColumns.PRICE].to_numpy(),
            quantities=rows[BidColumns.QUANTITY].to_numpy(),
            zone_clearing_price=float(clearing_prices[0]),
            market_side=self.market_side,
        )
        if not ladder.is_price_monotonic:
            logger.warning(
                f"{key}: {self.market_side.value} ladder is not monotonic in price; "
                f"it is used as supplied"
            )
        return ladder

    def iter_ladders(self) -> Iterator[BidLadder]:
        for key in self._keys:
            yield self.get_ladder(key)
