from .normalized_curve import NormalizedCurve, UnitResult
from .curve_store import CurveCoefficientStore

__all__ = [
    'NormalizedCurve',
    'UnitResult',
    'CurveCoefficientStore',
]
