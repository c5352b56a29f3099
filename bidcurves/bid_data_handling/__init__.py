"""Bid data handling: from a tabular bid dataset to empirical price curves.

Raw -> Filtered -> Normalized -> StepFunctionBuilt for each (date, hour) unit:

    - BidRecordFilter: removes close bids and open supply sentinels
    - BidCurveExtractor: splits a dataset into BidLadders per CurveKey
    - VolumeNormalizer: cumulative volume / Vmax with an anchor at zero
    - StepFunctionBuilder: right-continuous price step function
"""

from .calendar_attributes import (
    CurveKey,
    CALENDAR_ATTRIBUTES,
    append_calendar_columns,
    calendar_frame_for_keys,
    keys_to_index,
)
from .bid_filter import BidRecordFilter
from .ladder_extractor import BidLadder, BidCurveExtractor
from .volume_normalizer import (
    VolumeNormalizer,
    NormalizedSamples,
    LadderNormalizationError,
    EmptyLadderError,
    DegenerateVolumeError,
)
from .step_function import StepFunction, StepFunctionBuilder

__all__ = [
    'CurveKey',
    'CALENDAR_ATTRIBUTES',
    'append_calendar_columns',
    'calendar_frame_for_keys',
    'keys_to_index',
    'BidRecordFilter',
    'BidLadder',
    'BidCurveExtractor',
    'VolumeNormalizer',
    'NormalizedSamples',
    'LadderNormalizationError',
    'EmptyLadderError',
    'DegenerateVolumeError',
    'StepFunction',
    'StepFunctionBuilder',
]
