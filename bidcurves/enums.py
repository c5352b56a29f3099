from __future__ import annotations

from enum import Enum


class MarketSideEnum(Enum):
    """
    Side of the auction a bid ladder belongs to.

    SUPPLY: offers, ladders are expected in ascending price order and carry
        "open" sentinel prices (3000 / 4000) that have to be removed.
    DEMAND: purchase bids, cumulative volume does not depend on a price
        ordering; ladders typically come in descending price order.
    """
    SUPPLY = 'supply'
    DEMAND = 'demand'


class SkipReasonEnum(Enum):
    EMPTY_LADDER = 'empty_ladder'
    DEGENERATE_VOLUME = 'degenerate_volume'
    SMOOTHING_CONVERGENCE = 'smoothing_convergence'


class UnitStateEnum(Enum):
    """Processing states of a single (date, hour) unit."""
    RAW = 'raw'
    FILTERED = 'filtered'
    NORMALIZED = 'normalized'
    STEP_FUNCTION_BUILT = 'step_function_built'
    SMOOTHED = 'smoothed'
    STORED = 'stored'
    SKIPPED = 'skipped'
