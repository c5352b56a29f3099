from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from bidcurves.bid_data_handling.volume_normalizer import NormalizedSamples


@dataclass(frozen=True, eq=False)
class StepFunction:
    """Right-continuous step function of normalized volume.

    f(v) is the level of the last breakpoint <= v. Left of the first
    breakpoint the first level applies, right of the last breakpoint the last
    level applies (flat extrapolation).
    """
    breakpoints: np.ndarray
    levels: np.ndarray

    def __post_init__(self):
        breakpoints = np.asarray(self.breakpoints, dtype=float)
        levels = np.asarray(self.levels, dtype=float)
        if breakpoints.ndim != 1 or breakpoints.shape != levels.shape or len(breakpoints) == 0:
            raise ValueError(
                f'breakpoints and levels must be non-empty 1d arrays of equal length, '
                f'got {breakpoints.shape} and {levels.shape}'
            )
        if (np.diff(breakpoints) < 0).any():
            raise ValueError('breakpoints must be non-decreasing')
        object.__setattr__(self, 'breakpoints', breakpoints)
        object.__setattr__(self, 'levels', levels)

    def __call__(self, v) -> np.ndarray:
        return self.evaluate(v)

    def evaluate(self, v) -> np.ndarray:
        v = np.asarray(v, dtype=float)
        if not np.isfinite(v).all():
            raise ValueError('query points must be finite')
        idx = np.searchsorted(self.breakpoints, v, side='right') - 1
        return self.levels[np.clip(idx, 0, len(self.levels) - 1)]


class StepFunctionBuilder:
    """Turns normalized ladder samples into the empirical price curve.

    Bid k fills the volume between the cumulative volume of the bids before it
    and its own cumulative volume, so each step starts at the previous sample's
    volume and carries the price of bid k:

        samples  (0, p1), (v1, p1), (v2, p2), ..., (1, pn)
        steps    [0, v1) -> p1, [v1, v2) -> p2, ..., [v_{n-1}, 1] -> pn

    Example:

        >>> samples = VolumeNormalizer().normalize(ladder)
        >>> step = StepFunctionBuilder().build(samples)
        >>> step(np.linspace(0, 1, 201))
    """

    def build(self, samples: NormalizedSamples) -> StepFunction:
        return self.from_breakpoints(samples.volumes, samples.prices)

    @staticmethod
    def from_breakpoints(volumes, prices) -> StepFunction:
        volumes = np.asarray(volumes, dtype=float)
        prices = np.asarray(prices, dtype=float)
        if len(volumes) < 2 or volumes.shape != prices.shape:
            raise ValueError('need at least the anchor and one bid sample of equal length')
        return StepFunction(breakpoints=volumes[:-1], levels=prices[1:])
