# caduceus/analytics/bucketing.py
#
# Time Bucketing
# Dense day/month windows and record grouping for the trend charts. Window
# generation never looks at the data: a window of N always yields N keys.

import logging
from datetime import date
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional

import pandas as pd

from data_processing.helpers import to_datetime_series
from .models import TimeSeries

logger = logging.getLogger(__name__)


def last_n_days(n: int, today: date) -> List[date]:
    """The `n` calendar days ending with `today`, oldest first."""
    if n < 1:
        return []
    return [ts.date() for ts in pd.date_range(end=pd.Timestamp(today), periods=n, freq='D')]


def last_n_months(n: int, today: date) -> List[str]:
    """The `n` months ending with the month of `today` as YYYY-MM keys, oldest first."""
    if n < 1:
        return []
    periods = pd.period_range(end=pd.Period(pd.Timestamp(today), freq='M'), periods=n, freq='M')
    return [period.strftime('%Y-%m') for period in periods]


def _partition(
    records: pd.DataFrame, field: str, key_fn: Callable[[pd.Series], pd.Series]
) -> Dict[Any, pd.DataFrame]:
    if records is None or records.empty or field not in records.columns:
        return {}
    dates = to_datetime_series(records[field], normalize=True)
    valid = dates.notna().to_numpy()
    if not valid.any():
        return {}
    # Positional mask and key array, so repeated row labels never pull in other rows.
    kept = records[valid]
    keys = key_fn(dates[valid]).to_numpy()
    return {key: group for key, group in kept.groupby(keys, sort=True)}


def group_by_date(records: pd.DataFrame, field: str) -> Dict[date, pd.DataFrame]:
    """Partitions `records` by the calendar date in `field`; unparseable dates are dropped."""
    return _partition(records, field, lambda dates: dates.dt.date)


def group_by_month(records: pd.DataFrame, field: str) -> Dict[str, pd.DataFrame]:
    """Partitions `records` by YYYY-MM of `field`; unparseable dates are dropped."""
    return _partition(records, field, lambda dates: dates.dt.strftime('%Y-%m'))


def day_label(day: date) -> str:
    """Short axis label, e.g. 'Mar 7'."""
    return f"{day.strftime('%b')} {day.day}"


def month_label(month_key: str) -> str:
    """Short axis label for a YYYY-MM key, e.g. 'Mar 24'."""
    return pd.Period(month_key, freq='M').strftime('%b %y')


def build_series(
    keys: Iterable[Hashable],
    groups: Dict[Hashable, Any],
    value_fn: Callable[[Any], Any] = len,
    label_fn: Callable[[Any], str] = str,
    name: str = "",
    empty: Optional[Any] = None,
) -> TimeSeries:
    """
    Zero-filled series over `keys`. Buckets without a group are evaluated
    against `empty` (an empty frame by default), so every key yields a point.
    """
    empty_group = empty if empty is not None else pd.DataFrame()
    points = tuple(
        (label_fn(key), value_fn(groups.get(key, empty_group)))
        for key in keys
    )
    return TimeSeries(name=name, points=points)


def daily_counts(records: pd.DataFrame, field: str, days: List[date], name: str = "") -> TimeSeries:
    """Convenience: count of records per day in `days`, labelled 'Mon D'."""
    return build_series(days, group_by_date(records, field), len, day_label, name=name)


def monthly_counts(records: pd.DataFrame, field: str, months: List[str], name: str = "") -> TimeSeries:
    """Convenience: count of records per month in `months`, labelled 'Mon YY'."""
    return build_series(months, group_by_month(records, field), len, month_label, name=name)
