from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Optional, TYPE_CHECKING

import numpy as np

from bidcurves.enums import MarketSideEnum

if TYPE_CHECKING:
    from bidcurves.smoothing.spline_basis import SplineBasis


class InvalidConfigSettingError(Exception):
    pass


@dataclass
class CurveSmoothingConfig:
    """Settings of a smoothing pass over a bid dataset.

    Attributes:
        market_side: Side of the auction; controls sentinel filtering and the
            expected price ordering of ladders.
        apply_bid_filters: Remove close bids (and open sentinels for supply)
            before extracting ladders.
        supply_sentinel_prices: Exact prices marking open supply bids.
        drop_zero_prices: Also remove bids priced at exactly zero, so that all
            remaining prices are strictly positive.
        grid_size: Number of evenly spaced points on [0, 1] at which step
            functions are sampled.
        basis_order: B-spline order (degree + 1).
        n_basis: Number of basis functions.
        penalty_derivative: Derivative order of the roughness penalty.
        log10_lambda_min: Smallest exponent of the λ candidate grid.
        log10_lambda_max: Largest exponent of the λ candidate grid.
        log10_lambda_step: Exponent increment of the λ candidate grid.
        n_jobs: Worker processes for the pass; 1 runs in-process.
        pbar: Show a tqdm progress bar.
        use_database: Read and write passes through the configured database.
        log_level: Level of the bidcurves loggers while the pass runs.
    """
    market_side: MarketSideEnum = MarketSideEnum.SUPPLY
    apply_bid_filters: bool = True
    supply_sentinel_prices: tuple[float, ...] = (3000.0, 4000.0)
    drop_zero_prices: bool = True
    grid_size: int = 201
    basis_order: int = 6
    n_basis: int = 18
    penalty_derivative: int = 4
    log10_lambda_min: float = -4.0
    log10_lambda_max: float = -1.0
    log10_lambda_step: float = 0.25
    n_jobs: int = 1
    pbar: bool = False
    use_database: bool = True
    log_level: int = logging.INFO

    def __post_init__(self):
        if isinstance(self.market_side, str):
            self.market_side = MarketSideEnum(self.market_side)
        self.validate()

    def validate(self):
        if self.grid_size < 2:
            raise InvalidConfigSettingError(f'grid_size must be at least 2, got {self.grid_size}')
        if self.basis_order < 1:
            raise InvalidConfigSettingError(f'basis_order must be positive, got {self.basis_order}')
        if self.n_basis < self.basis_order:
            raise InvalidConfigSettingError(
                f'n_basis ({self.n_basis}) must not be smaller than basis_order ({self.basis_order})'
            )
        if self.penalty_derivative >= self.basis_order:
            raise InvalidConfigSettingError(
                f'penalty_derivative ({self.penalty_derivative}) must be smaller than '
                f'basis_order ({self.basis_order}), otherwise the penalty vanishes'
            )
        if self.log10_lambda_step <= 0 or self.log10_lambda_max < self.log10_lambda_min:
            raise InvalidConfigSettingError('λ grid must be a non-empty increasing range')
        if self.n_jobs < 1:
            raise InvalidConfigSettingError(f'n_jobs must be at least 1, got {self.n_jobs}')

    @property
    def lambda_candidates(self) -> np.ndarray:
        n_steps = int(round((self.log10_lambda_max - self.log10_lambda_min) / self.log10_lambda_step))
        exponents = self.log10_lambda_min + self.log10_lambda_step * np.arange(n_steps + 1)
        return 10.0 ** exponents

    @property
    def evaluation_grid(self) -> np.ndarray:
        return np.linspace(0.0, 1.0, self.grid_size)

    def build_basis(self) -> SplineBasis:
        from bidcurves.smoothing.spline_basis import SplineBasis
        return SplineBasis(order=self.basis_order, n_basis=self.n_basis)

    def merge(self, other: Optional[CurveSmoothingConfig | dict]) -> CurveSmoothingConfig:
        if other is None:
            return self

        values = {f.name: getattr(self, f.name) for f in fields(self)}

        if isinstance(other, dict):
            unknown = set(other).difference(values)
            if unknown:
                raise InvalidConfigSettingError(f'Unknown config settings: {sorted(unknown)}')
            overrides = other
        else:
            overrides = {f.name: getattr(other, f.name) for f in fields(other)}

        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        return self.__class__(**values)

    def get_hash_attributes(self) -> dict:
        """Settings that change the content of a pass (execution settings excluded)."""
        excluded = {'n_jobs', 'pbar', 'use_database', 'log_level'}
        attrs = {f.name: getattr(self, f.name) for f in fields(self) if f.name not in excluded}
        attrs['market_side'] = self.market_side.value
        return attrs

    def __repr__(self) -> str:
        attrs = {f.name: getattr(self, f.name) for f in fields(self)}
        return f"{self.__class__.__name__}({attrs})"
