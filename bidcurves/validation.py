from typing import Iterable
from abc import ABC, abstractmethod

import pandas as pd

from bidcurves.utils.logging import get_logger

logger = get_logger(__name__)


class BidColumns:
    DATE = 'date'
    HOUR = 'hour'
    PRICE = 'price'
    QUANTITY = 'quantity'
    ZONE_CLEARING_PRICE = 'zone_clearing_price'

    REQUIRED = [DATE, HOUR, PRICE, QUANTITY, ZONE_CLEARING_PRICE]
    NUMERIC = [HOUR, PRICE, QUANTITY, ZONE_CLEARING_PRICE]


class InvalidBidDatasetError(Exception):
    pass


class Validation(ABC):
    @abstractmethod
    def validate(self, bid_df: pd.DataFrame) -> bool:
        pass

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Validation {self.__class__.__name__} failed for bid dataset with {len(bid_df)} rows"

    def get_success_message(self, bid_df: pd.DataFrame) -> str:
        return f"Validation {self.__class__.__name__} successful"


class RequiredColumnsValidation(Validation):
    def __init__(self, columns: Iterable[str] = None):
        self.columns = list(columns) if columns is not None else list(BidColumns.REQUIRED)

    def _missing(self, bid_df: pd.DataFrame) -> list[str]:
        return [c for c in self.columns if c not in bid_df.columns]

    def validate(self, bid_df: pd.DataFrame) -> bool:
        return not self._missing(bid_df)

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Bid dataset is missing required columns {self._missing(bid_df)}"


class NumericColumnsValidation(Validation):
    def __init__(self, columns: Iterable[str] = None):
        self.columns = list(columns) if columns is not None else list(BidColumns.NUMERIC)

    def _non_numeric(self, bid_df: pd.DataFrame) -> list[str]:
        return [
            c for c in self.columns
            if c in bid_df.columns and not pd.api.types.is_numeric_dtype(bid_df[c])
        ]

    def validate(self, bid_df: pd.DataFrame) -> bool:
        return not self._non_numeric(bid_df)

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Columns {self._non_numeric(bid_df)} must be numeric"


class NoMissingValuesValidation(Validation):
    def __init__(self, columns: Iterable[str] = None):
        self.columns = list(columns) if columns is not None else list(BidColumns.REQUIRED)

    def _columns_with_na(self, bid_df: pd.DataFrame) -> list[str]:
        return [c for c in self.columns if c in bid_df.columns and bid_df[c].isna().any()]

    def validate(self, bid_df: pd.DataFrame) -> bool:
        return not self._columns_with_na(bid_df)

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Columns {self._columns_with_na(bid_df)} contain missing values"


class ConstraintValidation(Validation):
    def __init__(
            self,
            column: str,
            min_value: float | None = None,
            max_value: float | None = None,
    ):
        self.column = column
        self.min_value = min_value
        self.max_value = max_value

    def validate(self, bid_df: pd.DataFrame) -> bool:
        if self.column not in bid_df.columns:
            return False
        data = pd.to_numeric(bid_df[self.column], errors='coerce')
        if self.min_value is not None and (data < self.min_value).any():
            return False
        if self.max_value is not None and (data > self.max_value).any():
            return False
        return True

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return (
            f"Column '{self.column}' violates the range "
            f"[{self.min_value}, {self.max_value}]"
        )


class WholeNumberValidation(Validation):
    def __init__(self, column: str):
        self.column = column

    def validate(self, bid_df: pd.DataFrame) -> bool:
        if self.column not in bid_df.columns:
            return False
        data = pd.to_numeric(bid_df[self.column], errors='coerce')
        return not (data.notna() & (data % 1 != 0)).any()

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Column '{self.column}' must only contain whole numbers"


class ParsableDatesValidation(Validation):
    def validate(self, bid_df: pd.DataFrame) -> bool:
        if BidColumns.DATE not in bid_df.columns:
            return False
        try:
            pd.to_datetime(bid_df[BidColumns.DATE])
        except (ValueError, TypeError):
            return False
        return True

    def get_error_message(self, bid_df: pd.DataFrame) -> str:
        return f"Column '{BidColumns.DATE}' can not be parsed as dates"


class BidDatasetValidator:
    """Structural checks on a bid dataset, run before any (date, hour) unit is processed.

    Every registered validation is run and logged. If any of them fails, an
    InvalidBidDatasetError is raised listing all failures, so a pass never
    starts on a structurally broken dataset.
    """
    def __init__(self):
        self.validations: list[Validation] = []
        self._register_validations()

    def _register_validations(self):
        self.add_validations([
            RequiredColumnsValidation(),
            NumericColumnsValidation(),
            NoMissingValuesValidation(),
            ParsableDatesValidation(),
            ConstraintValidation(BidColumns.HOUR, min_value=1, max_value=24),
            WholeNumberValidation(BidColumns.HOUR),
            ConstraintValidation(BidColumns.QUANTITY, min_value=0),
        ])

    def add_validations(self, validations: Iterable[Validation]):
        for v in validations:
            self.validations.append(v)

    def add_validation(self, validation: Validation):
        self.validations.append(validation)

    def validate_dataset(self, bid_df: pd.DataFrame):
        if not isinstance(bid_df, pd.DataFrame):
            raise InvalidBidDatasetError(f"Expected a pandas DataFrame, got {type(bid_df)}")

        errors = []
        for validation in self.validations:
            if not validation.validate(bid_df):
                message = validation.get_error_message(bid_df)
                errors.append(message)
                logger.error(message)
            else:
                logger.debug(validation.get_success_message(bid_df))

            if isinstance(validation, RequiredColumnsValidation) and errors:
                break

        if errors:
            raise InvalidBidDatasetError(
                f"{len(errors)} validations NOT PASSED for bid dataset:\n" + "\n".join(errors)
            )
        logger.info(f"All {len(self.validations)} validations passed for bid dataset with {len(bid_df)} rows")
