from bidcurves.databases.database import CurveDatabase
from bidcurves.databases.pickle_db import PickleCurveDatabase

__all__ = [
    'CurveDatabase',
    'PickleCurveDatabase',
]
