# caduceus/data_processing/loaders.py
#
# Source Collection Schemas & Loading
# Declares the canonical shape of every source collection and turns a raw
# JSON payload into a cleaned, consistently typed DataFrame. Loading never
# raises for malformed records: bad entries are dropped or left as NaN/NaT
# so the analytics engine can exclude them per aggregate.

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd

try:
    from config.settings import settings
    from .pipeline import DataPipeline
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in loaders.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class Source(str, Enum):
    """The six independently fetched collections."""
    WARDS = "wards"
    ACTIVE_ADMISSIONS = "active_admissions"
    ALL_ADMISSIONS = "all_admissions"
    APPOINTMENTS = "appointments"
    DOCTORS = "doctors"
    PATIENTS = "patients"


@dataclass(frozen=True)
class SourceSchema:
    """Canonical columns, backend aliases and typed columns for one source."""
    columns: List[str]
    aliases: Dict[str, str] = field(default_factory=dict)
    date_columns: List[str] = field(default_factory=list)
    upper_columns: List[str] = field(default_factory=list)
    defaults: Dict[str, Any] = field(default_factory=dict)


_ADMISSION_SCHEMA = SourceSchema(
    columns=['admission_id', 'patient_id', 'patient_name', 'ward_id', 'ward_name',
             'bed_number', 'status', 'admission_date', 'discharge_date'],
    aliases={'patient_national_id': 'patient_id', 'id': 'admission_id'},
    date_columns=['admission_date', 'discharge_date'],
    upper_columns=['status'],
)

SOURCE_SCHEMAS: Dict[Source, SourceSchema] = {
    Source.WARDS: SourceSchema(
        columns=['ward_id', 'ward_name', 'ward_type', 'bed_capacity'],
        aliases={'name': 'ward_name', 'type': 'ward_type', 'total': 'bed_capacity', 'id': 'ward_id'},
        defaults={'bed_capacity': settings.analytics.bed_capacity, 'ward_type': 'general'},
    ),
    Source.ACTIVE_ADMISSIONS: _ADMISSION_SCHEMA,
    Source.ALL_ADMISSIONS: _ADMISSION_SCHEMA,
    Source.APPOINTMENTS: SourceSchema(
        columns=['appointment_id', 'doctor_id', 'doctor_name', 'patient_id', 'status',
                 'appointment_date', 'appointment_time'],
        aliases={'doctor_employee_id': 'doctor_id', 'patient_national_id': 'patient_id',
                 'id': 'appointment_id'},
        date_columns=['appointment_date'],
        upper_columns=['status'],
    ),
    Source.DOCTORS: SourceSchema(
        columns=['doctor_id', 'name', 'specialization'],
        aliases={'employee_id': 'doctor_id', 'emp_id': 'doctor_id', 'doctor_name': 'name',
                 'id': 'doctor_id', 'doctor_specialization': 'specialization'},
    ),
    Source.PATIENTS: SourceSchema(
        columns=['patient_id', 'date_of_birth', 'gender', 'registration_date'],
        aliases={'national_id': 'patient_id', 'patient_national_id': 'patient_id', 'id': 'patient_id'},
        date_columns=['date_of_birth', 'registration_date'],
    ),
}


def empty_collection(source: Source) -> pd.DataFrame:
    """A zero-row DataFrame carrying the full schema of `source`."""
    return prepare_collection(source, [])


def prepare_collection(source: Source, payload: Optional[Any]) -> pd.DataFrame:
    """
    Validates and cleans a raw JSON collection for `source`.

    Non-object entries are dropped (logged), known backend aliases are mapped
    onto canonical snake_case columns, missing columns are added, dates are
    parsed (unparseable -> NaT) and status text is upper-cased.
    """
    schema = SOURCE_SCHEMAS[Source(source)]
    log_ctx = f"Collection({Source(source).value})"

    if payload is None:
        records: List[Dict[str, Any]] = []
    elif isinstance(payload, list):
        records = [entry for entry in payload if isinstance(entry, dict)]
        dropped = len(payload) - len(records)
        if dropped:
            logger.warning(f"[{log_ctx}] Dropped {dropped} entries that were not JSON objects.")
    else:
        logger.error(f"[{log_ctx}] Expected a JSON list, got {type(payload).__name__}. Treating as empty.")
        records = []

    df = pd.DataFrame.from_records(records) if records else pd.DataFrame()

    df_processed = (
        DataPipeline(df)
        .clean_column_names()
        .rename_columns(schema.aliases)
        .ensure_columns(schema.columns)
        .standardize_missing_values(schema.defaults)
        .uppercase_columns(schema.upper_columns)
        .convert_date_columns(schema.date_columns)
        .get_df()
    )
    logger.debug(f"[{log_ctx}] Prepared {len(df_processed)} records.")
    return df_processed.reset_index(drop=True)
