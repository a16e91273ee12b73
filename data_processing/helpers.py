# caduceus/data_processing/helpers.py
#
# Core Data Utilities
# Small, total coercion helpers shared by the loaders and the analytics engine.
# None of these functions raise on malformed input; they return None/NaT.

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Pre-compiled regex for finding various "Not Available" strings.
_NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|na|null|nil|<na>|undefined|unknown|-|)\s*$'
)
_WHITESPACE_PATTERN = re.compile(r'\s+')
_TRAILING_INT_PATTERN = re.compile(r'(\d+)\s*$')


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT and the usual "Not Available" strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return bool(_NA_REGEX_PATTERN.match(value))
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # Containers (lists, dicts) are not scalar-missing.
        return False


def normalize_identifier(value: Any) -> Optional[str]:
    """
    Canonical string form of an opaque identifier, or None when absent.

    Numeric ids that went through a float column (1.0) compare equal to
    their integer and string spellings (1, "1").
    """
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (float, np.floating)):
        if float(value).is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    text = str(value).strip()
    return text or None


def normalize_name(value: Any) -> Optional[str]:
    """Case-folded, trimmed, whitespace-collapsed label; None when absent."""
    if is_missing(value):
        return None
    text = _WHITESPACE_PATTERN.sub(' ', str(value)).strip().casefold()
    return text or None


def extract_trailing_int(value: Any) -> Optional[int]:
    """Returns the trailing integer of a label ("Ward 1" -> 1, "ward12" -> 12)."""
    name = normalize_name(value)
    if name is None:
        return None
    match = _TRAILING_INT_PATTERN.search(name)
    return int(match.group(1)) if match else None


def _iso_or_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _parse_single_timestamp(value: Any) -> pd.Timestamp:
    if is_missing(value):
        return pd.NaT
    try:
        parsed = pd.to_datetime(_iso_or_value(value), errors='coerce')
    except (TypeError, ValueError, OverflowError):
        return pd.NaT
    if parsed is pd.NaT or pd.isna(parsed):
        return pd.NaT
    if parsed.tzinfo is not None:
        parsed = parsed.tz_localize(None)
    return parsed


def to_datetime_series(data: Any, normalize: bool = False) -> pd.Series:
    """
    Robustly converts a column of date-like values to datetime64.

    Accepts ISO strings (date or date-time, with or without offset), date and
    datetime objects, or an already-converted datetime column. Unparseable
    entries become NaT. Timezone-aware values keep their local wall time and
    drop the offset. With `normalize=True` the time of day is dropped.
    """
    series = data if isinstance(data, pd.Series) else pd.Series(data, dtype=object)

    if pd.api.types.is_datetime64_any_dtype(series.dtype):
        parsed = series
    else:
        cleaned = series.astype(object).map(lambda v: pd.NA if is_missing(v) else _iso_or_value(v))
        try:
            parsed = pd.to_datetime(cleaned, errors='coerce', format='mixed')
        except (TypeError, ValueError, OverflowError):
            # Mixed naive/aware offsets cannot be parsed in one pass.
            parsed = cleaned.map(_parse_single_timestamp)
        if not pd.api.types.is_datetime64_any_dtype(parsed.dtype):
            parsed = parsed.map(_parse_single_timestamp)
            parsed = pd.to_datetime(parsed, errors='coerce')

    if getattr(parsed.dt, 'tz', None) is not None:
        parsed = parsed.dt.tz_localize(None)
    return parsed.dt.normalize() if normalize else parsed


def to_date(value: Any) -> Optional[date]:
    """Scalar form of `to_datetime_series`: a calendar date or None."""
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = _parse_single_timestamp(value)
    if parsed is pd.NaT or pd.isna(parsed):
        return None
    return parsed.date()
