from .spline_basis import SplineBasis
from .basis_smoother import BasisSmoother, SmoothingResult, SmoothingConvergenceError

__all__ = [
    'SplineBasis',
    'BasisSmoother',
    'SmoothingResult',
    'SmoothingConvergenceError',
]
