from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import pandas as pd

CALENDAR_ATTRIBUTES = ['year', 'month', 'day', 'weekday', 'hour']


@dataclass(frozen=True, order=True)
class CurveKey:
    """Identifies one auction unit: a delivery day and an hour (1..24).

    The calendar attributes used for slicing the curve store are derived from
    the date; weekday follows the pandas convention (0 = Monday).
    """
    date: dt.date
    hour: int

    @classmethod
    def from_values(cls, date, hour) -> CurveKey:
        return cls(date=pd.Timestamp(date).date(), hour=int(hour))

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def month(self) -> int:
        return self.date.month

    @property
    def day(self) -> int:
        return self.date.day

    @property
    def weekday(self) -> int:
        return self.date.weekday()

    def calendar_attributes(self) -> dict[str, int]:
        return {attr: getattr(self, attr) for attr in CALENDAR_ATTRIBUTES}

    def __str__(self) -> str:
        return f"{self.date.isoformat()} h{self.hour:02d}"


def append_calendar_columns(
        df: pd.DataFrame,
        date_column: str = 'date',
        hour_column: str = 'hour',
) -> pd.DataFrame:
    """Return a copy of df with year, month, day and weekday columns derived from date_column."""
    df = df.copy()
    dates = pd.to_datetime(df[date_column])
    df['year'] = dates.dt.year
    df['month'] = dates.dt.month
    df['day'] = dates.dt.day
    df['weekday'] = dates.dt.dayofweek
    df[hour_column] = df[hour_column].astype(int)
    return df


def keys_to_index(keys: list[CurveKey]) -> pd.MultiIndex:
    return pd.MultiIndex.from_arrays(
        [[k.date for k in keys], [k.hour for k in keys]],
        names=['date', 'hour'],
    )


def calendar_frame_for_keys(keys: list[CurveKey]) -> pd.DataFrame:
    index = keys_to_index(keys)
    return pd.DataFrame(
        [k.calendar_attributes() for k in keys],
        index=index,
        columns=CALENDAR_ATTRIBUTES,
    )
