from __future__ import annotations

from typing import Iterable

import pandas as pd

from bidcurves.enums import MarketSideEnum
from bidcurves.validation import BidColumns
from bidcurves.utils.logging import get_logger

logger = get_logger(__name__)


class BidRecordFilter:
    """Removes bids that do not belong on a bid curve.

    - Close bids (negative price) are removed on both sides.
    - Open supply bids, marked by exact sentinel prices (3000 and 4000 by
      default), are removed from supply data only.
    - Zero-priced bids are removed when drop_zero_prices is set, so that all
      remaining prices are strictly positive.

    The filter only drops rows; it never reorders or modifies the remaining
    records.

    Example:

        >>> bid_filter = BidRecordFilter(MarketSideEnum.SUPPLY)
        >>> clean_df = bid_filter.apply(raw_supply_df)
    """
    def __init__(
            self,
            market_side: MarketSideEnum = MarketSideEnum.SUPPLY,
            sentinel_prices: Iterable[float] = (3000.0, 4000.0),
            drop_zero_prices: bool = True,
    ):
        self.market_side = market_side
        self.sentinel_prices = tuple(float(p) for p in sentinel_prices)
        self.drop_zero_prices = drop_zero_prices

    def get_keep_mask(self, bid_df: pd.DataFrame) -> pd.Series:
        prices = bid_df[BidColumns.PRICE]
        if self.drop_zero_prices:
            keep = prices > 0
        else:
            keep = prices >= 0
        if self.market_side is MarketSideEnum.SUPPLY and self.sentinel_prices:
            keep &= ~prices.isin(self.sentinel_prices)
        return keep

    def apply(self, bid_df: pd.DataFrame) -> pd.DataFrame:
        keep = self.get_keep_mask(bid_df)
        num_dropped = int((~keep).sum())
        if num_dropped:
            logger.info(
                f"Filtered {num_dropped} of {len(bid_df)} {self.market_side.value} bids "
                f"(close bids{', open sentinels' if self.market_side is MarketSideEnum.SUPPLY else ''})"
            )
        return bid_df.loc[keep]
