from typing import Optional, List
import os
import glob
import hashlib
from pathlib import Path

import pandas as pd

from bidcurves.config import CurveSmoothingConfig
from bidcurves.databases.database import CurveDatabase

SEPARATOR = "__"
GLOB_CHARACTERS = "*?[]/\\"


class PickleCurveDatabase(CurveDatabase):
    """File-based database storing each artifact as a separate pickle file.

    Filenames are built from the dataset name, the artifact name and a hash of
    the content-relevant config settings:

        <dataset_name>__<artifact>__config-<hash>.pickle

    Example:

        >>> db = PickleCurveDatabase("/path/to/cache")
        >>> db.set('gme_2018', 'curves', config, curve_frame)
        >>> db.get('gme_2018', 'curves', config)
        >>> db.delete(dataset_name='gme_2018')
    """
    def __init__(self, folder_path: str):
        self._folder_path = str(folder_path)
        self._ensure_folder_exists(self._folder_path)

    @property
    def folder_path(self) -> Path:
        return Path(self._folder_path)

    def get(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig = None,
    ) -> pd.Series | pd.DataFrame:
        file_path = self._get_file_path(dataset_name, artifact, config)
        if not os.path.exists(file_path):
            raise KeyError(f"No artifact '{artifact}' stored for dataset '{dataset_name}' with this config")
        return pd.read_pickle(file_path)

    def set(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig,
            value: pd.Series | pd.DataFrame,
    ):
        file_path = self._get_file_path(dataset_name, artifact, config)
        value.to_pickle(file_path)

    def key_is_up_to_date(
            self,
            dataset_name: str,
            artifact: str,
            config: CurveSmoothingConfig = None,
    ) -> bool:
        return os.path.exists(self._get_file_path(dataset_name, artifact, config))

    @staticmethod
    def _get_config_hash(config: CurveSmoothingConfig = None) -> str:
        if config is None:
            return ""
        sorted_items = sorted(config.get_hash_attributes().items())
        return hashlib.md5(str(sorted_items).encode()).hexdigest()[:12]

    @staticmethod
    def _check_name(name: str, what: str):
        if not name or SEPARATOR in name or any(c in name for c in GLOB_CHARACTERS):
            raise ValueError(f"Invalid {what} '{name}': must be non-empty, without '{SEPARATOR}' or glob characters")

    def _get_file_path(self, dataset_name: str, artifact: str, config: CurveSmoothingConfig = None) -> str:
        self._check_name(dataset_name, 'dataset_name')
        self._check_name(artifact, 'artifact')
        components = [dataset_name, artifact]

        config_hash = self._get_config_hash(config)
        if config_hash:
            components.append(f"config-{config_hash}")

        filename = SEPARATOR.join(components) + ".pickle"
        return os.path.join(self._folder_path, filename)

    def _get_pattern(
            self,
            dataset_name: Optional[str] = None,
            artifact: Optional[str] = None,
            config: Optional[CurveSmoothingConfig] = None,
    ) -> str:
        pattern_parts = [
            dataset_name if dataset_name is not None else "*",
            artifact if artifact is not None else "*",
        ]
        if config is not None:
            pattern_parts.append(f"config-{self._get_config_hash(config)}")
        pattern = SEPARATOR.join(pattern_parts) + "*.pickle"
        return os.path.join(self._folder_path, pattern)

    def delete(
            self,
            dataset_name: Optional[str] = None,
            artifact: Optional[str] = None,
            config: Optional[CurveSmoothingConfig] = None,
    ):
        for file_path in glob.glob(self._get_pattern(dataset_name, artifact, config)):
            os.remove(file_path)

    def list_keys(
            self,
            dataset_name: Optional[str] = None,
            artifact: Optional[str] = None,
    ) -> List[str]:
        files = glob.glob(self._get_pattern(dataset_name, artifact))
        return sorted(os.path.splitext(os.path.basename(f))[0] for f in files)

    @staticmethod
    def _ensure_folder_exists(folder_path: str):
        os.makedirs(folder_path, exist_ok=True)
