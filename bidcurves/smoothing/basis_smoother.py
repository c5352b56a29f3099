from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from bidcurves.smoothing.spline_basis import SplineBasis
from bidcurves.utils.logging import get_logger

logger = get_logger(__name__)


class SmoothingConvergenceError(Exception):
    def __init__(self, message: str, key=None):
        self.key = key
        super().__init__(f"{key}: {message}" if key is not None else message)


@dataclass(frozen=True, eq=False)
class SmoothingResult:
    """Outcome of a basis fit for one sampled curve.

    Attributes:
        coefficients: Final coefficients from the unregularized projection of
            the smoothed curve onto the basis evaluation matrix.
        selected_lambda: λ with the minimal GCV score.
        gcv_scores: GCV score per candidate λ (NaN where undefined).
        fitted_values: Basis expansion of coefficients on the evaluation grid.
        degrees_of_freedom: Trace of the smoother matrix at selected_lambda.
    """
    coefficients: np.ndarray
    selected_lambda: float
    gcv_scores: pd.Series
    fitted_values: np.ndarray
    degrees_of_freedom: float

    @property
    def min_gcv(self) -> float:
        return float(self.gcv_scores.loc[self.selected_lambda])


class BasisSmoother:
    """Roughness-penalized basis regression with GCV selection of the penalty weight.

    For a curve y sampled on `grid` the penalized coefficients for weight λ are

        c(λ) = (Φ'Φ + λR)^-1 Φ'y

    with Φ the basis evaluation matrix on the grid and R the roughness penalty
    of the `penalty_derivative`-th derivative. The generalized cross-validation
    score of a candidate is

        GCV(λ) = (SSE / n) / ((n - df) / n)^2,   df = trace(Φ (Φ'Φ + λR)^-1 Φ')

    fit() selects the candidate with the smallest finite GCV (the first one in
    candidate order on ties), smooths y with it and finally regresses the
    smoothed values on Φ without penalty to obtain the stored coefficients.

    Args:
        basis: Shared spline basis.
        grid: Evaluation points in the basis domain.
        lambda_candidates: Candidate penalty weights, searched in the given order.
        penalty_derivative: Derivative order of the roughness penalty.

    Example:

        >>> smoother = BasisSmoother(SplineBasis(6, 18), np.linspace(0, 1, 201), 10 ** np.arange(-4, -0.99, 0.25))
        >>> result = smoother.fit(step_function(smoother.grid))
        >>> result.selected_lambda, result.coefficients.shape
    """

    def __init__(
            self,
            basis: SplineBasis,
            grid,
            lambda_candidates,
            penalty_derivative: int = 4,
    ):
        self.basis = basis
        self.grid = np.asarray(grid, dtype=float)
        self.lambda_candidates = np.asarray(lambda_candidates, dtype=float)
        self.penalty_derivative = int(penalty_derivative)

        if self.lambda_candidates.ndim != 1 or len(self.lambda_candidates) == 0:
            raise ValueError('lambda_candidates must be a non-empty 1d sequence')
        if (self.lambda_candidates < 0).any():
            raise ValueError('lambda_candidates must be non-negative')

        self._phi = basis.evaluation_matrix(self.grid)
        self._penalty = basis.penalty_matrix(self.penalty_derivative)
        self._gram = self._phi.T @ self._phi

    @property
    def evaluation_matrix(self) -> np.ndarray:
        return self._phi

    @property
    def n_points(self) -> int:
        return len(self.grid)

    def _check_values(self, y) -> np.ndarray:
        y = np.asarray(y, dtype=float)
        if y.shape != self.grid.shape:
            raise ValueError(f'expected {len(self.grid)} sampled values, got shape {y.shape}')
        return y

    def penalized_fit(self, y, lam: float) -> tuple[np.ndarray, float]:
        """Penalized coefficients and effective degrees of freedom for one λ.

        Raises:
            np.linalg.LinAlgError: If the penalized normal equations are singular.
        """
        y = self._check_values(y)
        system = self._gram + lam * self._penalty
        coefficients = np.linalg.solve(system, self._phi.T @ y)
        degrees_of_freedom = float(np.trace(np.linalg.solve(system, self._gram)))
        return coefficients, degrees_of_freedom

    def gcv_score(self, y, lam: float) -> float:
        """GCV score for one λ, NaN where it is undefined."""
        y = self._check_values(y)
        n = self.n_points
        with np.errstate(invalid='ignore', over='ignore', divide='ignore'):
            try:
                coefficients, degrees_of_freedom = self.penalized_fit(y, lam)
            except np.linalg.LinAlgError:
                return np.nan

            residual_df = n - degrees_of_freedom
            if not residual_df > 0:
                return np.nan

            sse = float(np.sum((y - self._phi @ coefficients) ** 2))
            gcv = (sse / n) / (residual_df / n) ** 2
        return gcv if np.isfinite(gcv) else np.nan

    def gcv_scores(self, y) -> pd.Series:
        scores = [self.gcv_score(y, lam) for lam in self.lambda_candidates]
        return pd.Series(scores, index=pd.Index(self.lambda_candidates, name='lambda'), name='gcv')

    def select_lambda(self, y, key=None) -> tuple[float, pd.Series]:
        scores = self.gcv_scores(y)
        finite = scores.to_numpy()
        if not np.isfinite(finite).any():
            raise SmoothingConvergenceError(
                f'none of the {len(scores)} λ candidates yields a finite GCV score', key
            )
        best_position = int(np.nanargmin(finite))
        selected = float(self.lambda_candidates[best_position])
        logger.debug(f"{key}: selected λ={selected:.3g} with GCV={finite[best_position]:.6g}")
        return selected, scores

    def fit(self, y, key=None) -> SmoothingResult:
        y = self._check_values(y)
        selected_lambda, scores = self.select_lambda(y, key)

        smoothed_coefficients, degrees_of_freedom = self.penalized_fit(y, selected_lambda)
        smoothed_values = self._phi @ smoothed_coefficients

        coefficients, *_ = np.linalg.lstsq(self._phi, smoothed_values, rcond=None)
        coefficients.setflags(write=False)
        fitted_values = self._phi @ coefficients

        return SmoothingResult(
            coefficients=coefficients,
            selected_lambda=selected_lambda,
            gcv_scores=scores,
            fitted_values=fitted_values,
            degrees_of_freedom=degrees_of_freedom,
        )
