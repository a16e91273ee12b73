# caduceus/analytics/resolution.py
#
# Entity Resolution
# Matches admissions to the ward that owns them even when the two feeds
# disagree on ids and naming, and derives patient ages from dates of birth.
# Matching is an ordered chain of strategies; the first strategy that finds a
# ward wins. No match is a normal outcome, never an error.

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

try:
    from config.settings import settings
    from data_processing.helpers import (
        extract_trailing_int,
        normalize_identifier,
        normalize_name,
        to_date,
    )
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in resolution.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]
Matcher = Callable[[Record, Record], bool]


def _match_by_id(admission: Record, ward: Record) -> bool:
    admission_id = normalize_identifier(admission.get('ward_id'))
    ward_id = normalize_identifier(ward.get('ward_id'))
    return admission_id is not None and ward_id is not None and admission_id == ward_id


def _match_by_exact_name(admission: Record, ward: Record) -> bool:
    admission_name = normalize_name(admission.get('ward_name'))
    return admission_name is not None and admission_name == normalize_name(ward.get('ward_name'))


def _match_by_containment(admission: Record, ward: Record) -> bool:
    admission_name = normalize_name(admission.get('ward_name'))
    ward_name = normalize_name(ward.get('ward_name'))
    if admission_name is None or ward_name is None:
        return False
    return admission_name in ward_name or ward_name in admission_name


def _match_by_trailing_number(admission: Record, ward: Record) -> bool:
    admission_number = extract_trailing_int(admission.get('ward_name'))
    return admission_number is not None and admission_number == extract_trailing_int(ward.get('ward_name'))


# Tried in order; a later strategy only runs when no ward satisfied an earlier one.
WARD_MATCHERS: Tuple[Matcher, ...] = (
    _match_by_id,
    _match_by_exact_name,
    _match_by_containment,
    _match_by_trailing_number,
)


def _as_records(rows: Any) -> List[Record]:
    if rows is None:
        return []
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict('records')
    return [row for row in rows if isinstance(row, Mapping)]


def _resolve_index(admission: Record, wards: Sequence[Record]) -> Optional[int]:
    for matcher in WARD_MATCHERS:
        for position, ward in enumerate(wards):
            if matcher(admission, ward):
                return position
    return None


def resolve_ward_for_admission(admission: Record, wards: Any) -> Optional[Record]:
    """
    Returns the ward owning `admission`, or None when every strategy fails.

    `wards` may be a DataFrame or a sequence of mappings. The result is
    deterministic: strategies run in WARD_MATCHERS order and, within one
    strategy, wards are scanned in their given order.
    """
    if not isinstance(admission, Mapping):
        return None
    ward_records = _as_records(wards)
    position = _resolve_index(admission, ward_records)
    return ward_records[position] if position is not None else None


def attribute_admissions(admissions: Any, wards: Any) -> Dict[int, List[Record]]:
    """
    Resolves every admission once and groups them by ward position.

    Every ward position is present in the result (possibly with an empty
    list) so callers can iterate wards and look up their admissions directly.
    """
    ward_records = _as_records(wards)
    attributed: Dict[int, List[Record]] = {position: [] for position in range(len(ward_records))}
    unmatched = 0
    for admission in _as_records(admissions):
        position = _resolve_index(admission, ward_records)
        if position is None:
            unmatched += 1
            continue
        attributed[position].append(admission)
    if unmatched:
        logger.debug(f"{unmatched} admissions could not be matched to any ward.")
    return attributed


def derive_age(date_of_birth: Any, as_of: date) -> Optional[int]:
    """Whole years between `date_of_birth` and `as_of`; None when unknown or in the future."""
    born = to_date(date_of_birth)
    if born is None or born > as_of:
        return None
    had_birthday = (as_of.month, as_of.day) >= (born.month, born.day)
    return as_of.year - born.year - (0 if had_birthday else 1)


def age_group(age: Optional[int], bands: Optional[Sequence[Tuple[str, int]]] = None) -> Optional[str]:
    """Label of the band whose lower bound is the greatest one not exceeding `age`."""
    if age is None or age < 0:
        return None
    bands = bands if bands is not None else settings.analytics.age_bands.bands
    label = None
    for band_label, lower in bands:
        if age >= lower:
            label = band_label
        else:
            break
    return label
