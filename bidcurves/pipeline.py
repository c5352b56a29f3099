from __future__ import annotations

import dataclasses
import threading
import concurrent.futures
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

import pandas as pd
from tqdm import tqdm

from bidcurves.config import CurveSmoothingConfig
from bidcurves.enums import SkipReasonEnum
from bidcurves.validation import BidDatasetValidator
from bidcurves.bid_data_handling import (
    BidRecordFilter,
    BidCurveExtractor,
    BidLadder,
    CurveKey,
    VolumeNormalizer,
    StepFunctionBuilder,
    EmptyLadderError,
    DegenerateVolumeError,
)
from bidcurves.smoothing import BasisSmoother, SmoothingConvergenceError, SplineBasis
from bidcurves.curves import NormalizedCurve, UnitResult, CurveCoefficientStore
from bidcurves.databases import CurveDatabase
from bidcurves.utils.logging import get_logger, set_log_level

logger = get_logger(__name__)

_SKIP_REASONS = {
    EmptyLadderError: SkipReasonEnum.EMPTY_LADDER,
    DegenerateVolumeError: SkipReasonEnum.DEGENERATE_VOLUME,
    SmoothingConvergenceError: SkipReasonEnum.SMOOTHING_CONVERGENCE,
}


def smooth_bid_ladder(
        ladder: BidLadder,
        smoother: BasisSmoother,
        normalizer: VolumeNormalizer = None,
        step_builder: StepFunctionBuilder = None,
) -> UnitResult:
    """Turn one bid ladder into a NormalizedCurve, or into a skip record.

    Normalizes the cumulative volume, builds the price step function, samples
    it on the smoother's grid and fits the basis coefficients. Empty ladders,
    zero Vmax and failed λ selection are returned as skipped results instead of
    being raised.
    """
    normalizer = normalizer or VolumeNormalizer()
    step_builder = step_builder or StepFunctionBuilder()

    try:
        samples = normalizer.normalize(ladder)
        step_function = step_builder.build(samples)
        smoothing = smoother.fit(step_function(smoother.grid), key=ladder.key)
    except tuple(_SKIP_REASONS) as e:
        return UnitResult.skipped(ladder.key, _SKIP_REASONS[type(e)], str(e))

    curve = NormalizedCurve(
        key=ladder.key,
        max_volume=samples.max_volume,
        volumes=samples.volumes,
        prices=samples.prices,
        coefficients=smoothing.coefficients,
        basis=smoother.basis,
        evaluation_grid=smoother.grid,
        selected_lambda=smoothing.selected_lambda,
        zone_clearing_price=ladder.zone_clearing_price,
        market_side=ladder.market_side,
    )
    return UnitResult.stored(curve)


_WORKER_SMOOTHER: BasisSmoother | None = None


def _init_worker(smoother: BasisSmoother, log_level: int):
    global _WORKER_SMOOTHER
    _WORKER_SMOOTHER = smoother
    set_log_level(log_level)


def _smooth_in_worker(ladder: BidLadder) -> UnitResult:
    return smooth_bid_ladder(ladder, _WORKER_SMOOTHER)


@dataclass
class SmoothingPassResult:
    """Curves and skipped units of one pass over a bid dataset."""
    store: CurveCoefficientStore
    skipped: list[UnitResult] = field(default_factory=list)
    num_units: int = 0
    interrupted: bool = False

    @property
    def skipped_keys(self) -> list[CurveKey]:
        return [r.key for r in self.skipped]

    @property
    def num_processed(self) -> int:
        return len(self.store) + len(self.skipped)

    def skipped_frame(self) -> pd.DataFrame:
        columns = ['date', 'hour', 'reason', 'message']
        records = [
            {'date': r.key.date, 'hour': r.key.hour, 'reason': r.skip_reason.value, 'message': r.message}
            for r in sorted(self.skipped, key=lambda r: r.key)
        ]
        return pd.DataFrame.from_records(records, columns=columns)

    def summary(self) -> str:
        text = (
            f"{len(self.store)} curves stored, {len(self.skipped)} units skipped "
            f"out of {self.num_units} units"
        )
        if self.interrupted:
            text += f" (pass interrupted after {self.num_processed} units)"
        return text


class CurveSmoothingPipeline:
    """
    Runs the smoothing pass over all (date, hour) units of a bid dataset.

    Raw -> Filtered -> Normalized -> StepFunctionBuilt -> Smoothed -> Stored,
    with units that fail normalization or λ selection ending up as skipped.
    The dataset is validated first; a structurally invalid dataset raises
    InvalidBidDatasetError before any unit is processed.

    Units are independent: with n_jobs > 1 they are distributed over a process
    pool, each worker holding its own copy of the read-only smoother. Results
    are reduced into one CurveCoefficientStore after all units are done.
    Units completed so far are available in completed_results while the pass
    runs; abort() or a KeyboardInterrupt ends the pass early and returns the
    completed units with interrupted=True.

    Example:

        >>> pipeline = CurveSmoothingPipeline(CurveSmoothingConfig(n_jobs=4, pbar=True))
        >>> result = pipeline.run(supply_bids_df)
        >>> result.store.filter(month=1, hour=18).coefficient_frame()
        >>> result.skipped_frame()
    """

    ARTIFACT_CURVES = 'curves'
    ARTIFACT_SKIPPED = 'skipped'
    ARTIFACT_BASIS = 'basis'

    def __init__(
            self,
            config: CurveSmoothingConfig | dict = None,
            database: CurveDatabase = None,
    ):
        self.config = CurveSmoothingConfig().merge(config)
        set_log_level(self.config.log_level)
        self.database = database
        self.basis: SplineBasis = self.config.build_basis()
        self.smoother = BasisSmoother(
            basis=self.basis,
            grid=self.config.evaluation_grid,
            lambda_candidates=self.config.lambda_candidates,
            penalty_derivative=self.config.penalty_derivative,
        )
        self.validator = BidDatasetValidator()
        self.completed_results: list[UnitResult] = []
        self._abort_event = threading.Event()

    def abort(self):
        """Stop the running pass after the units currently in progress."""
        self._abort_event.set()

    @property
    def aborted(self) -> bool:
        return self._abort_event.is_set()

    def extract_ladders(self, bid_df: pd.DataFrame) -> BidCurveExtractor:
        """Validate and filter a raw bid dataset and split it into ladders."""
        self.validator.validate_dataset(bid_df)
        raw_keys = BidCurveExtractor.get_keys(bid_df)

        if self.config.apply_bid_filters:
            bid_filter = BidRecordFilter(
                market_side=self.config.market_side,
                sentinel_prices=self.config.supply_sentinel_prices,
                drop_zero_prices=self.config.drop_zero_prices,
            )
            bid_df = bid_filter.apply(bid_df)

        return BidCurveExtractor(bid_df, self.config.market_side, known_keys=raw_keys)

    def run(self, bid_df: pd.DataFrame, dataset_name: str = None) -> SmoothingPassResult:
        if self._use_database(dataset_name) and self._pass_is_cached(dataset_name):
            logger.info(f"Loading cached smoothing pass for dataset '{dataset_name}'")
            return self.load_pass(dataset_name)

        extractor = self.extract_ladders(bid_df)
        result = self.run_ladders(extractor.iter_ladders(), num_units=len(extractor))

        if self._use_database(dataset_name) and not result.interrupted:
            self.save_pass(dataset_name, result)
        return result

    def run_ladders(self, ladders: Iterable[BidLadder], num_units: int = None) -> SmoothingPassResult:
        self._abort_event.clear()
        self.completed_results = []
        if num_units is None:
            ladders = list(ladders)
            num_units = len(ladders)

        logger.info(
            f"Smoothing {num_units} {self.config.market_side.value} units "
            f"with {self.basis} on {len(self.smoother.grid)} grid points"
        )

        if self.config.n_jobs == 1:
            results = self._iter_sequential(ladders)
        else:
            results = self._iter_parallel(ladders)

        interrupted = False
        try:
            for unit_result in self._progress(results, num_units):
                self._collect(unit_result)
                if self.aborted:
                    break
        except KeyboardInterrupt:
            interrupted = True
        finally:
            results.close()
        interrupted = interrupted or (self.aborted and len(self.completed_results) < num_units)

        result = self._reduce(self.completed_results, num_units, interrupted)
        if interrupted:
            logger.warning(f"Smoothing pass aborted: {result.summary()}")
        else:
            logger.info(f"Smoothing pass finished: {result.summary()}")
        return result

    def _iter_sequential(self, ladders: Iterable[BidLadder]) -> Iterator[UnitResult]:
        for ladder in ladders:
            yield smooth_bid_ladder(ladder, self.smoother)

    def _iter_parallel(self, ladders: Iterable[BidLadder]) -> Iterator[UnitResult]:
        executor = ProcessPoolExecutor(
            max_workers=self.config.n_jobs,
            initializer=_init_worker,
            initargs=(self.smoother, self.config.log_level),
        )
        try:
            futures = [executor.submit(_smooth_in_worker, ladder) for ladder in ladders]
            for future in concurrent.futures.as_completed(futures):
                yield self._rebind_to_shared_basis(future.result())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def _rebind_to_shared_basis(self, unit_result: UnitResult) -> UnitResult:
        if unit_result.is_skipped:
            return unit_result
        curve = dataclasses.replace(unit_result.curve, basis=self.basis, evaluation_grid=self.smoother.grid)
        return UnitResult.stored(curve)

    def _progress(self, results: Iterator[UnitResult], num_units: int) -> Iterable[UnitResult]:
        if self.config.pbar:
            return tqdm(results, total=num_units, desc=f'Smoothing {self.config.market_side.value} curves')
        return results

    def _collect(self, unit_result: UnitResult):
        if unit_result.is_skipped:
            logger.warning(f"Skipped {unit_result.key} ({unit_result.skip_reason.value}): {unit_result.message}")
        self.completed_results.append(unit_result)

    def _reduce(self, unit_results: list[UnitResult], num_units: int, interrupted: bool) -> SmoothingPassResult:
        store = CurveCoefficientStore(
            self.basis,
            self.smoother.grid,
            [r.curve for r in unit_results if not r.is_skipped],
        )
        skipped = [r for r in unit_results if r.is_skipped]
        return SmoothingPassResult(store=store, skipped=skipped, num_units=num_units, interrupted=interrupted)

    def _use_database(self, dataset_name: Optional[str]) -> bool:
        return self.config.use_database and self.database is not None and dataset_name is not None

    def _pass_is_cached(self, dataset_name: str) -> bool:
        return all(
            self.database.key_is_up_to_date(dataset_name, artifact, self.config)
            for artifact in [self.ARTIFACT_CURVES, self.ARTIFACT_SKIPPED, self.ARTIFACT_BASIS]
        )

    def save_pass(self, dataset_name: str, result: SmoothingPassResult):
        if self.database is None:
            raise ValueError('No database configured')
        self.database.set(dataset_name, self.ARTIFACT_CURVES, self.config, result.store.to_frame())
        self.database.set(dataset_name, self.ARTIFACT_SKIPPED, self.config, result.skipped_frame())
        self.database.set(dataset_name, self.ARTIFACT_BASIS, self.config, pd.Series(self.basis.to_dict()))
        logger.info(f"Stored smoothing pass for dataset '{dataset_name}'")

    def load_pass(self, dataset_name: str) -> SmoothingPassResult:
        if self.database is None:
            raise ValueError('No database configured')
        basis = SplineBasis.from_dict(self.database.get(dataset_name, self.ARTIFACT_BASIS, self.config).to_dict())
        if basis != self.basis:
            raise ValueError(f"Cached pass for '{dataset_name}' uses {basis}, pipeline uses {self.basis}")

        curve_df = self.database.get(dataset_name, self.ARTIFACT_CURVES, self.config)
        store = CurveCoefficientStore.from_frame(curve_df, self.basis, self.smoother.grid)

        skipped_df = self.database.get(dataset_name, self.ARTIFACT_SKIPPED, self.config)
        skipped = [
            UnitResult.skipped(CurveKey.from_values(row.date, row.hour), SkipReasonEnum(row.reason), row.message)
            for row in skipped_df.itertuples(index=False)
        ]
        return SmoothingPassResult(store=store, skipped=skipped, num_units=len(store) + len(skipped))
