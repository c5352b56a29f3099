from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from bidcurves.enums import MarketSideEnum, SkipReasonEnum, UnitStateEnum
from bidcurves.bid_data_handling.calendar_attributes import CurveKey
from bidcurves.smoothing.spline_basis import SplineBasis
from bidcurves.units import Units


@dataclass(frozen=True, eq=False)
class NormalizedCurve:
    """
    Functional representation of one bid ladder.

    Holds the maximum called volume, the raw (normalized volume, price) samples
    and the coefficients of the smoothed curve over the shared basis. The basis
    and the evaluation grid are references to process-wide shared objects.
    Instances are never modified; a new fit produces a new curve.

    Attributes:
        key: (date, hour) of the auction unit
        max_volume: Vmax of the ladder
        volumes: Normalized volume samples, starting with the anchor at 0
        prices: Price samples matching volumes
        coefficients: Basis coefficients of the smoothed curve
        basis: Shared spline basis
        evaluation_grid: Grid the curve was fitted on
        selected_lambda: Penalty weight chosen by GCV
        zone_clearing_price: Realized clearing price of the unit
        market_side: Auction side of the ladder
    """

    key: CurveKey
    max_volume: float
    volumes: np.ndarray
    prices: np.ndarray
    coefficients: np.ndarray
    basis: SplineBasis
    evaluation_grid: np.ndarray
    selected_lambda: float = np.nan
    zone_clearing_price: float = np.nan
    market_side: MarketSideEnum = MarketSideEnum.SUPPLY

    def __post_init__(self):
        for name in ['volumes', 'prices', 'coefficients']:
            values = np.array(getattr(self, name), dtype=float)
            values.setflags(write=False)
            object.__setattr__(self, name, values)
        if len(self.coefficients) != self.basis.n_basis:
            raise ValueError(
                f'{self.key}: expected {self.basis.n_basis} coefficients, got {len(self.coefficients)}'
            )
        if self.volumes.shape != self.prices.shape:
            raise ValueError(f'{self.key}: volume and price samples differ in length')

    @property
    def year(self) -> int:
        return self.key.year

    @property
    def month(self) -> int:
        return self.key.month

    @property
    def day(self) -> int:
        return self.key.day

    @property
    def weekday(self) -> int:
        return self.key.weekday

    @property
    def hour(self) -> int:
        return self.key.hour

    @property
    def evaluation_matrix(self) -> np.ndarray:
        return self.basis.evaluation_matrix(self.evaluation_grid)

    @property
    def fitted_values(self) -> np.ndarray:
        return self.evaluation_matrix @ self.coefficients

    @property
    def max_volume_quantity(self) -> Units.Quantity:
        return self.max_volume * Units.BID_VOLUME

    @property
    def clearing_price_quantity(self) -> Units.Quantity:
        return self.zone_clearing_price * Units.BID_PRICE

    def evaluate(self, normalized_volume) -> np.ndarray:
        return self.basis.linear_combination(self.coefficients, normalized_volume)

    def evaluate_at_volume(self, volume) -> np.ndarray:
        """Evaluate the smoothed curve at absolute volumes in [0, max_volume]."""
        return self.evaluate(np.asarray(volume, dtype=float) / self.max_volume)

    def to_record(self) -> dict:
        return {
            'date': self.key.date,
            'hour': self.key.hour,
            **{a: getattr(self.key, a) for a in ['year', 'month', 'day', 'weekday']},
            'max_volume': self.max_volume,
            'zone_clearing_price': self.zone_clearing_price,
            'selected_lambda': self.selected_lambda,
            'market_side': self.market_side.value,
            'volumes': self.volumes,
            'prices': self.prices,
            'coefficients': self.coefficients,
        }

    def __repr__(self) -> str:
        return (
            f"NormalizedCurve(key={self.key}, max_volume={self.max_volume}, "
            f"num_samples={len(self.volumes)}, selected_lambda={self.selected_lambda:.3g})"
        )


@dataclass(frozen=True)
class UnitResult:
    """Outcome of processing one (date, hour) unit: a stored curve or a skip reason."""
    key: CurveKey
    state: UnitStateEnum
    curve: Optional[NormalizedCurve] = None
    skip_reason: Optional[SkipReasonEnum] = None
    message: str = ''

    @classmethod
    def stored(cls, curve: NormalizedCurve) -> UnitResult:
        return cls(key=curve.key, state=UnitStateEnum.STORED, curve=curve)

    @classmethod
    def skipped(cls, key: CurveKey, reason: SkipReasonEnum, message: str = '') -> UnitResult:
        return cls(key=key, state=UnitStateEnum.SKIPPED, skip_reason=reason, message=message)

    @property
    def is_skipped(self) -> bool:
        return self.state is UnitStateEnum.SKIPPED
