from __future__ import annotations

import numpy as np
from scipy.interpolate import BSpline


class SplineBasis:
    """B-spline basis with equally spaced knots on a closed domain.

    One instance is shared by every curve of a pass. The basis itself is
    immutable; evaluation and penalty matrices are computed once per query
    grid and handed out read-only.

    Args:
        order: Spline order (polynomial degree + 1).
        n_basis: Number of basis functions; n_basis - order interior knots are
            placed equidistantly in the domain.
        domain: (lower, upper) bounds of the basis.

    Example:

        >>> basis = SplineBasis(order=6, n_basis=18)
        >>> phi = basis.evaluation_matrix(np.linspace(0, 1, 201))
        >>> phi.shape
            (201, 18)
    """

    def __init__(self, order: int = 6, n_basis: int = 18, domain: tuple[float, float] = (0.0, 1.0)):
        if order < 1:
            raise ValueError(f'order must be positive, got {order}')
        if n_basis < order:
            raise ValueError(f'n_basis ({n_basis}) must not be smaller than order ({order})')
        lower, upper = float(domain[0]), float(domain[1])
        if not upper > lower:
            raise ValueError(f'invalid domain {domain}')

        self._order = int(order)
        self._n_basis = int(n_basis)
        self._domain = (lower, upper)
        self._breaks = np.linspace(lower, upper, self._n_basis - self._order + 2)
        degree = self._order - 1
        self._knots = np.concatenate([
            np.full(degree, lower),
            self._breaks,
            np.full(degree, upper),
        ])
        self._spline = BSpline(self._knots, np.eye(self._n_basis), degree, extrapolate=True)
        self._matrix_cache: dict[tuple[bytes, int], np.ndarray] = {}
        self._penalty_cache: dict[int, np.ndarray] = {}

    @property
    def order(self) -> int:
        return self._order

    @property
    def degree(self) -> int:
        return self._order - 1

    @property
    def n_basis(self) -> int:
        return self._n_basis

    @property
    def domain(self) -> tuple[float, float]:
        return self._domain

    @property
    def breaks(self) -> np.ndarray:
        return self._breaks.copy()

    @property
    def knots(self) -> np.ndarray:
        return self._knots.copy()

    def _check_points(self, x: np.ndarray):
        lower, upper = self._domain
        if not np.isfinite(x).all():
            raise ValueError('evaluation points must be finite')
        if (x < lower).any() or (x > upper).any():
            raise ValueError(f'evaluation points outside of basis domain {self._domain}')

    def evaluate(self, x, derivative: int = 0) -> np.ndarray:
        """Values (or derivatives) of all basis functions, shape (len(x), n_basis)."""
        x = np.atleast_1d(np.asarray(x, dtype=float))
        self._check_points(x)
        if derivative == 0:
            return self._spline(x)
        if derivative >= self._order:
            return np.zeros((len(x), self._n_basis))
        return self._spline.derivative(derivative)(x)

    def evaluation_matrix(self, grid, derivative: int = 0) -> np.ndarray:
        """Cached, read-only version of evaluate for a fixed grid."""
        grid = np.ascontiguousarray(grid, dtype=float)
        cache_key = (grid.tobytes(), derivative)
        matrix = self._matrix_cache.get(cache_key)
        if matrix is None:
            matrix = self.evaluate(grid, derivative)
            matrix.setflags(write=False)
            self._matrix_cache[cache_key] = matrix
        return matrix

    def penalty_matrix(self, derivative: int = 4) -> np.ndarray:
        """Roughness penalty R[j, k] = integral of D^m phi_j * D^m phi_k over the domain.

        The integrand is piecewise polynomial between breaks, so Gauss-Legendre
        quadrature with `order` nodes per break interval is exact.
        """
        penalty = self._penalty_cache.get(derivative)
        if penalty is not None:
            return penalty

        nodes, weights = np.polynomial.legendre.leggauss(self._order)
        penalty = np.zeros((self._n_basis, self._n_basis))
        for a, b in zip(self._breaks[:-1], self._breaks[1:]):
            half_width = 0.5 * (b - a)
            x = half_width * nodes + 0.5 * (a + b)
            d = self.evaluate(x, derivative)
            penalty += (d * (weights * half_width)[:, None]).T @ d

        penalty = 0.5 * (penalty + penalty.T)
        penalty.setflags(write=False)
        self._penalty_cache[derivative] = penalty
        return penalty

    def linear_combination(self, coefficients, x) -> np.ndarray:
        """Evaluate the expansion sum_k c_k phi_k(x)."""
        coefficients = np.asarray(coefficients, dtype=float)
        if coefficients.shape[0] != self._n_basis:
            raise ValueError(f'expected {self._n_basis} coefficients, got {coefficients.shape[0]}')
        return self.evaluate(x) @ coefficients

    def to_dict(self) -> dict:
        return {
            'type': 'bspline',
            'order': self._order,
            'n_basis': self._n_basis,
            'domain': list(self._domain),
            'knots': self._knots.tolist(),
        }

    @classmethod
    def from_dict(cls, definition: dict) -> SplineBasis:
        if definition.get('type', 'bspline') != 'bspline':
            raise ValueError(f"Unsupported basis type {definition.get('type')}")
        return cls(
            order=int(definition['order']),
            n_basis=int(definition['n_basis']),
            domain=tuple(definition.get('domain', (0.0, 1.0))),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, SplineBasis):
            return NotImplemented
        return (self._order, self._n_basis, self._domain) == (other._order, other._n_basis, other._domain)

    def __hash__(self) -> int:
        return hash((self._order, self._n_basis, self._domain))

    def __repr__(self) -> str:
        return f"SplineBasis(order={self._order}, n_basis={self._n_basis}, domain={self._domain})"
