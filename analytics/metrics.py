# caduceus/analytics/metrics.py
#
# Metric Calculators
# Pure functions computing rates, rankings and classifications over already
# grouped or filtered records. All of them are total: empty input yields 0.

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

import numpy as np
import pandas as pd

from data_processing.helpers import to_datetime_series
from .models import AppointmentRates

logger = logging.getLogger(__name__)

T = TypeVar('T')

WELL_BALANCED = "Well Balanced"
HIGH_LOAD = "High Load"
# Share of doctors above the daily threshold at which load is considered high.
WORKLOAD_BALANCE_THRESHOLD = 0.5

APPOINTMENT_STATUSES = ("SCHEDULED", "CONFIRMED", "IN_PROGRESS", "COMPLETED", "CANCELLED", "NO_SHOW")
ADMISSION_STATUSES = ("ACTIVE", "DISCHARGED", "TRANSFERRED")
OTHER_STATUS = "OTHER"


def round_half_away(value: Union[int, float, Decimal], ndigits: int = 0) -> float:
    """Rounds half away from zero (2.5 -> 3, -2.5 -> -3) rather than to even."""
    try:
        quantum = Decimal(1).scaleb(-ndigits)
        rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return 0.0
    return float(rounded)


def percentage(part: Any, total: Any) -> int:
    """round(100 * part / total) as an integer in [0, 100]; 0 when total is not positive."""
    try:
        part_dec = Decimal(str(part))
        total_dec = Decimal(str(total))
    except (InvalidOperation, ValueError):
        return 0
    if not total_dec.is_finite() or not part_dec.is_finite() or total_dec <= 0:
        return 0
    raw = (part_dec * 100 / total_dec).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(min(max(raw, Decimal(0)), Decimal(100)))


def average_length_of_stay(admissions: pd.DataFrame) -> float:
    """
    Mean of ceil(discharge - admission, in days) over DISCHARGED admissions
    carrying both dates, rounded to one decimal. Records with a discharge
    before their admission are treated as malformed and skipped.
    """
    if admissions is None or admissions.empty:
        return 0.0
    required = {'status', 'admission_date', 'discharge_date'}
    if not required.issubset(admissions.columns):
        return 0.0

    discharged = admissions[admissions['status'] == 'DISCHARGED']
    if discharged.empty:
        return 0.0
    admitted = to_datetime_series(discharged['admission_date'])
    released = to_datetime_series(discharged['discharge_date'])
    stay_days = (released - admitted) / pd.Timedelta(days=1)
    stay_days = stay_days.dropna()
    stay_days = stay_days[stay_days >= 0]
    if stay_days.empty:
        return 0.0
    return round_half_away(float(np.ceil(stay_days).mean()), 1)


def top_n(items: Sequence[T], key: Union[str, Callable[[T], Any]], n: int) -> List[T]:
    """The `n` items with the highest `key`, ties kept in input order."""
    if n <= 0 or not items:
        return []
    key_fn = key if callable(key) else (lambda item: getattr(item, key))
    # sorted() stays stable with reverse=True.
    return sorted(items, key=key_fn, reverse=True)[:n]


def workload_balance(busy_count: int, total_count: int) -> str:
    """WELL_BALANCED while fewer than half the doctors are busy, else HIGH_LOAD."""
    if total_count <= 0:
        return WELL_BALANCED
    return WELL_BALANCED if busy_count / total_count < WORKLOAD_BALANCE_THRESHOLD else HIGH_LOAD


def efficiency_score(completion_rate: int, cancellation_rate: int, no_show_rate: int) -> int:
    """Completion minus cancellation minus no-show rate. May be negative."""
    return int(completion_rate) - int(cancellation_rate) - int(no_show_rate)


def _normalized_statuses(statuses: Optional[Iterable[Any]]) -> pd.Series:
    if statuses is None:
        return pd.Series(dtype=object)
    series = statuses if isinstance(statuses, pd.Series) else pd.Series(list(statuses), dtype=object)
    return series.map(lambda v: str(v).strip().upper() if pd.notna(v) else OTHER_STATUS)


def count_statuses(statuses: Optional[Iterable[Any]], order: Sequence[str]) -> Dict[str, int]:
    """
    Counts per status in `order`, with everything else under OTHER.
    Every status in `order` is present and the counts sum to the input size.
    """
    normalized = _normalized_statuses(statuses)
    counts = {status: 0 for status in order}
    counts[OTHER_STATUS] = 0
    for status, count in normalized.value_counts().items():
        if status in counts and status != OTHER_STATUS:
            counts[status] += int(count)
        else:
            counts[OTHER_STATUS] += int(count)
    return counts


def appointment_rates(statuses: Optional[Iterable[Any]]) -> AppointmentRates:
    """Status totals and completion/cancellation/no-show rates for a set of appointments."""
    counts = count_statuses(statuses, APPOINTMENT_STATUSES)
    total = sum(counts.values())
    completion = percentage(counts['COMPLETED'], total)
    cancellation = percentage(counts['CANCELLED'], total)
    no_show = percentage(counts['NO_SHOW'], total)
    return AppointmentRates(
        total=total,
        completed=counts['COMPLETED'],
        scheduled=counts['SCHEDULED'],
        cancelled=counts['CANCELLED'],
        no_show=counts['NO_SHOW'],
        completion_rate=completion,
        cancellation_rate=cancellation,
        no_show_rate=no_show,
        efficiency_score=efficiency_score(completion, cancellation, no_show),
    )


def mean_rate(rates: Iterable[int]) -> int:
    """Rounded mean of a set of integer rates; 0 when empty."""
    values = [r for r in rates if r is not None and not (isinstance(r, float) and math.isnan(r))]
    if not values:
        return 0
    return int(round_half_away(sum(values) / len(values)))
