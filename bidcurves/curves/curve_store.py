from __future__ import annotations

from typing import Any, Iterable, Iterator
from collections import defaultdict

import numpy as np
import pandas as pd

from bidcurves.enums import MarketSideEnum
from bidcurves.bid_data_handling.calendar_attributes import (
    CurveKey,
    CALENDAR_ATTRIBUTES,
    calendar_frame_for_keys,
    keys_to_index,
)
from bidcurves.curves.normalized_curve import NormalizedCurve
from bidcurves.smoothing.spline_basis import SplineBasis


class CurveCoefficientStore:
    """
    Append-only collection of NormalizedCurves keyed by (date, hour).

    All curves share one SplineBasis and evaluation grid. The calendar index
    (year, month, day, weekday, hour) is built lazily on first query, i.e.
    after all curves of a pass have been added.

    Examples:

        store.filter(month=1, hour=18)               # all 6pm curves in January
        store.filter(weekday=[5, 6])                 # weekend curves
        store.coefficient_frame()                    # (n_curves x n_basis) DataFrame
        store.evaluate_curves(np.linspace(0, 1, 101))
    """

    def __init__(self, basis: SplineBasis, evaluation_grid, curves: Iterable[NormalizedCurve] | None = None):
        self._basis = basis
        self._evaluation_grid = np.asarray(evaluation_grid, dtype=float)
        self._evaluation_grid.setflags(write=False)
        self._curves: dict[CurveKey, NormalizedCurve] = {}
        self._calendar_index: pd.DataFrame | None = None
        if curves is not None:
            self.extend(curves)

    @property
    def basis(self) -> SplineBasis:
        return self._basis

    @property
    def evaluation_grid(self) -> np.ndarray:
        return self._evaluation_grid

    @property
    def evaluation_matrix(self) -> np.ndarray:
        return self._basis.evaluation_matrix(self._evaluation_grid)

    def add(self, curve: NormalizedCurve) -> None:
        """Add a curve; a key can only be stored once."""
        if not isinstance(curve, NormalizedCurve):
            raise TypeError(f"Expected NormalizedCurve instance, got {type(curve)}")
        if curve.key in self._curves:
            raise KeyError(f"A curve for {curve.key} is already stored")
        if curve.basis != self._basis:
            raise ValueError(f"Curve {curve.key} was fitted on {curve.basis}, store uses {self._basis}")
        self._curves[curve.key] = curve
        self._calendar_index = None

    def extend(self, curves: Iterable[NormalizedCurve]) -> None:
        for curve in curves:
            self.add(curve)

    def get(self, key: CurveKey) -> NormalizedCurve:
        try:
            return self._curves[key]
        except KeyError:
            raise KeyError(f"No curve stored for {key}") from None

    def get_curve(self, date, hour: int) -> NormalizedCurve:
        return self.get(CurveKey.from_values(date, hour))

    @property
    def keys(self) -> list[CurveKey]:
        return sorted(self._curves)

    @property
    def empty(self) -> bool:
        return len(self._curves) == 0

    def __len__(self) -> int:
        return len(self._curves)

    def __contains__(self, key: CurveKey) -> bool:
        return key in self._curves

    def __iter__(self) -> Iterator[NormalizedCurve]:
        for key in self.keys:
            yield self._curves[key]

    def calendar_frame(self) -> pd.DataFrame:
        """Calendar attributes per stored key, indexed by (date, hour)."""
        if self._calendar_index is None:
            self._calendar_index = calendar_frame_for_keys(self.keys)
        return self._calendar_index

    def filter(self, **calendar_filters) -> CurveCoefficientStore:
        """
        Select curves by calendar attributes.

        Args:
            **calendar_filters: year, month, day, weekday and/or hour. Scalars
                match exactly, lists/tuples/sets match by membership. All
                conditions are combined with AND logic.

        Returns:
            New store with the matching curves
        """
        unknown = set(calendar_filters).difference(CALENDAR_ATTRIBUTES)
        if unknown:
            raise ValueError(f"Unknown calendar attributes {sorted(unknown)}, use {CALENDAR_ATTRIBUTES}")

        calendar = self.calendar_frame()
        mask = pd.Series(True, index=calendar.index)
        for attr, value in calendar_filters.items():
            if isinstance(value, (list, tuple, set, frozenset, np.ndarray, pd.Index)):
                mask &= calendar[attr].isin(list(value))
            else:
                mask &= calendar[attr] == value

        selected = [self._curves[key] for key, keep in zip(self.keys, mask.to_numpy()) if keep]
        return CurveCoefficientStore(self._basis, self._evaluation_grid, selected)

    def group_keys_by(self, attribute: str) -> dict[Any, list[CurveKey]]:
        if attribute not in CALENDAR_ATTRIBUTES:
            raise ValueError(f"Unknown calendar attribute '{attribute}', use {CALENDAR_ATTRIBUTES}")
        groups = defaultdict(list)
        for key in self.keys:
            groups[getattr(key, attribute)].append(key)
        return dict(groups)

    def _key_index(self) -> pd.MultiIndex:
        return keys_to_index(self.keys)

    def coefficient_frame(self) -> pd.DataFrame:
        columns = pd.RangeIndex(self._basis.n_basis, name='basis_function')
        if self.empty:
            return pd.DataFrame(columns=columns, dtype=float)
        return pd.DataFrame(
            np.vstack([c.coefficients for c in self]),
            index=self._key_index(),
            columns=columns,
        )

    def evaluate_curves(self, normalized_volume=None) -> pd.DataFrame:
        """Smoothed prices of all curves, one row per curve and one column per query point."""
        points = self._evaluation_grid if normalized_volume is None else np.asarray(normalized_volume, dtype=float)
        columns = pd.Index(points, name='normalized_volume')
        if self.empty:
            return pd.DataFrame(columns=columns, dtype=float)
        values = self._basis.evaluate(points) @ self.coefficient_frame().to_numpy().T
        return pd.DataFrame(values.T, index=self._key_index(), columns=columns)

    def to_frame(self) -> pd.DataFrame:
        """One row per curve with metadata, raw samples and coefficients."""
        records = [c.to_record() for c in self]
        df = pd.DataFrame.from_records(records)
        if df.empty:
            return df
        return df.set_index(['date', 'hour'])

    @classmethod
    def from_frame(cls, df: pd.DataFrame, basis: SplineBasis, evaluation_grid) -> CurveCoefficientStore:
        store = cls(basis, evaluation_grid)
        if df.empty:
            return store
        for (date, hour), row in df.iterrows():
            store.add(NormalizedCurve(
                key=CurveKey.from_values(date, hour),
                max_volume=float(row['max_volume']),
                volumes=row['volumes'],
                prices=row['prices'],
                coefficients=row['coefficients'],
                basis=store.basis,
                evaluation_grid=store.evaluation_grid,
                selected_lambda=float(row['selected_lambda']),
                zone_clearing_price=float(row['zone_clearing_price']),
                market_side=MarketSideEnum(row['market_side']),
            ))
        return store

    def __repr__(self) -> str:
        return f"CurveCoefficientStore(num_curves={len(self)}, basis={self._basis})"
