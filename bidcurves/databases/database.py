"""Abstract database interface for caching smoothing passes.

A cached artifact is identified by:
- dataset_name: Name of the bid dataset a pass was run on
- artifact: Kind of result (e.g. the curve frame, the skipped units, the basis)
- config: CurveSmoothingConfig the pass was run with
"""

from abc import ABC, abstractmethod
from typing import Optional, List

import pandas as pd

from bidcurves.config import CurveSmoothingConfig


class CurveDatabase(ABC):
    """Abstract base class for database implementations."""

    @abstractmethod
    def get(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig = None,
    ) -> pd.Series | pd.DataFrame:
        """Retrieve an artifact.

        Raises:
            KeyError: If no data is stored for the given key combination
        """
        pass

    @abstractmethod
    def set(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig,
            value: pd.Series | pd.DataFrame,
    ):
        pass

    @abstractmethod
    def key_is_up_to_date(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig = None,
    ) -> bool:
        pass

    @abstractmethod
    def delete(
            self,
            dataset_name: Optional[str] = None,
            artifact: Optional[str] = None,
            config: Optional[CurveSmoothingConfig] = None,
    ):
        """Delete all artifacts matching the given criteria; None matches everything."""
        pass

    @abstractmethod
    def list_keys(
            self,
            dataset_name: Optional[str] = None,
            artifact: Optional[str] = None,
    ) -> List[str]:
        pass
