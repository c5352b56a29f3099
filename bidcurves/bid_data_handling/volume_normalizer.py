from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from bidcurves.bid_data_handling.calendar_attributes import CurveKey
from bidcurves.bid_data_handling.ladder_extractor import BidLadder


class LadderNormalizationError(Exception):
    def __init__(self, message: str, key: CurveKey = None):
        self.key = key
        super().__init__(f"{key}: {message}" if key is not None else message)


class EmptyLadderError(LadderNormalizationError):
    """No bid of a (date, hour) unit survived filtering."""


class DegenerateVolumeError(LadderNormalizationError):
    """The maximum called volume of a (date, hour) unit is zero."""


@dataclass(frozen=True, eq=False)
class NormalizedSamples:
    """(normalized volume, price) samples of one ladder.

    The first sample is the anchor (0, first price); sample k >= 1 holds the
    cumulative volume after bid k divided by max_volume, and the price of
    bid k.
    """
    volumes: np.ndarray
    prices: np.ndarray
    max_volume: float

    def __len__(self) -> int:
        return len(self.volumes)


class VolumeNormalizer:
    """Rescales the cumulative volume of a bid ladder into [0, 1]."""

    def normalize(self, ladder: BidLadder) -> NormalizedSamples:
        if ladder.is_empty:
            raise EmptyLadderError('no qualifying bids after filtering', ladder.key)

        max_volume = ladder.max_volume
        if not max_volume > 0:
            raise DegenerateVolumeError(f'maximum called volume is {max_volume}', ladder.key)

        volumes = np.concatenate([[0.0], ladder.cumulative_volumes / max_volume])
        prices = np.concatenate([ladder.prices[:1], ladder.prices])
        return NormalizedSamples(volumes=volumes, prices=prices, max_volume=max_volume)
