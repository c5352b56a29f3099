"""bidcurves: functional representation of electricity spot-market bid curves.

Each (date, hour) auction unit of a bid dataset is turned into a continuous
price curve over normalized volume:

    bid ladder -> normalized (volume, price) samples -> price step function
    -> penalized B-spline fit with GCV-selected λ -> basis coefficients

The resulting NormalizedCurves share one SplineBasis and are collected in a
CurveCoefficientStore that can be sliced by year, month, day, weekday and hour
for downstream clustering and price prediction.

Example:

    >>> from bidcurves import CurveSmoothingPipeline, CurveSmoothingConfig, MarketSideEnum
    >>> pipeline = CurveSmoothingPipeline(CurveSmoothingConfig(market_side=MarketSideEnum.SUPPLY))
    >>> result = pipeline.run(supply_bids_df)
    >>> evening_curves = result.store.filter(hour=[18, 19, 20])
    >>> result.skipped_frame()
"""

from bidcurves.enums import MarketSideEnum, SkipReasonEnum, UnitStateEnum
from bidcurves.config import CurveSmoothingConfig, InvalidConfigSettingError
from bidcurves.validation import BidColumns, BidDatasetValidator, InvalidBidDatasetError
from bidcurves.bid_data_handling import (
    CurveKey,
    BidRecordFilter,
    BidLadder,
    BidCurveExtractor,
    VolumeNormalizer,
    NormalizedSamples,
    EmptyLadderError,
    DegenerateVolumeError,
    StepFunction,
    StepFunctionBuilder,
)
from bidcurves.smoothing import SplineBasis, BasisSmoother, SmoothingResult, SmoothingConvergenceError
from bidcurves.curves import NormalizedCurve, UnitResult, CurveCoefficientStore
from bidcurves.databases import CurveDatabase, PickleCurveDatabase
from bidcurves.pipeline import CurveSmoothingPipeline, SmoothingPassResult, smooth_bid_ladder

__all__ = [
    'MarketSideEnum',
    'SkipReasonEnum',
    'UnitStateEnum',
    'CurveSmoothingConfig',
    'InvalidConfigSettingError',
    'BidColumns',
    'BidDatasetValidator',
    'InvalidBidDatasetError',
    'CurveKey',
    'BidRecordFilter',
    'BidLadder',
    'BidCurveExtractor',
    'VolumeNormalizer',
    'NormalizedSamples',
    'EmptyLadderError',
    'DegenerateVolumeError',
    'StepFunction',
    'StepFunctionBuilder',
    'SplineBasis',
    'BasisSmoother',
    'SmoothingResult',
    'SmoothingConvergenceError',
    'NormalizedCurve',
    'UnitResult',
    'CurveCoefficientStore',
    'CurveDatabase',
    'PickleCurveDatabase',
    'CurveSmoothingPipeline',
    'SmoothingPassResult',
    'smooth_bid_ladder',
]

__version__ = '0.1.0'
