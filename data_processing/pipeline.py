# caduceus/data_processing/pipeline.py
#
# Fluent Data Processing Pipeline
# A chainable class for applying a sequence of cleaning steps to a raw
# collection fetched from the backend before it enters the RecordStore.

import logging
import re
from collections import Counter
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from .helpers import _NA_REGEX_PATTERN, to_datetime_series

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.

    Usage:
        df = (
            DataPipeline(pd.DataFrame(payload))
            .clean_column_names()
            .rename_columns({'patient_national_id': 'patient_id'})
            .ensure_columns(['ward_id', 'ward_name'])
            .convert_date_columns(['admission_date'])
            .get_df()
        )
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self._df = df.copy()

    def get_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self._df

    def clean_column_names(self) -> 'DataPipeline':
        """Converts backend camelCase keys to snake_case column names."""
        if len(self._df.columns) == 0:
            return self
        try:
            new_cols = (
                pd.Index([_CAMEL_BOUNDARY.sub('_', str(c)) for c in self._df.columns])
                .str.lower().str.strip()
                .str.replace(r'[^0-9a-z_]+', '_', regex=True)
                .str.replace(r'_{2,}', '_', regex=True).str.strip('_')
            )
            new_cols = [f"unnamed_col_{i}" if not name else name for i, name in enumerate(new_cols)]

            counts = Counter(new_cols)
            if max(counts.values(), default=0) > 1:
                seen = Counter()
                final_cols = []
                for col_name in new_cols:
                    if counts[col_name] > 1:
                        suffix = seen[col_name]
                        seen[col_name] += 1
                        final_cols.append(f"{col_name}_{suffix}" if suffix else col_name)
                    else:
                        final_cols.append(col_name)
                self._df.columns = final_cols
            else:
                self._df.columns = new_cols
        except Exception as e:
            logger.error(f"Error standardizing column names: {e}", exc_info=True)
        return self

    def rename_columns(self, rename_map: Dict[str, str]) -> 'DataPipeline':
        """
        Renames alias columns onto their canonical names. An alias is only
        used when the canonical column is absent or entirely empty.
        """
        if not rename_map:
            return self
        for alias, canonical in rename_map.items():
            if alias not in self._df.columns or alias == canonical:
                continue
            if canonical in self._df.columns:
                self._df[canonical] = self._df[canonical].where(
                    self._df[canonical].notna(), self._df[alias]
                )
                self._df.drop(columns=[alias], inplace=True)
            else:
                self._df.rename(columns={alias: canonical}, inplace=True)
        return self

    def ensure_columns(self, columns: List[str]) -> 'DataPipeline':
        """Adds any missing column as all-NaN so downstream code sees the full schema."""
        for col in columns:
            if col not in self._df.columns:
                self._df[col] = pd.Series([np.nan] * len(self._df), index=self._df.index, dtype=object)
        return self

    def standardize_missing_values(self, column_defaults: Dict[str, Any]) -> 'DataPipeline':
        """Replaces various 'Not Available' formats and fills with provided defaults."""
        if not column_defaults:
            return self
        for col, default_val in column_defaults.items():
            if col not in self._df.columns:
                continue
            series = self._df[col]
            if isinstance(default_val, (int, float, np.number)) and not isinstance(default_val, bool):
                numeric = pd.to_numeric(
                    series.astype(object).replace(_NA_REGEX_PATTERN, np.nan, regex=True), errors='coerce'
                )
                # Capacities must be positive; anything else falls back to the default.
                self._df[col] = numeric.where(numeric > 0, default_val)
            else:
                series_obj = series.astype(object).replace(_NA_REGEX_PATTERN, np.nan, regex=True)
                self._df[col] = series_obj.fillna(str(default_val))
        return self

    def uppercase_columns(self, columns: List[str]) -> 'DataPipeline':
        """Trims and upper-cases enum-like text columns (e.g. statuses)."""
        for col in columns:
            if col in self._df.columns:
                series = self._df[col].astype(object).replace(_NA_REGEX_PATTERN, np.nan, regex=True)
                self._df[col] = series.map(lambda v: str(v).strip().upper() if pd.notna(v) else np.nan)
        return self

    def convert_date_columns(self, date_columns: List[str]) -> 'DataPipeline':
        """Converts specified columns to datetime64; unparseable values become NaT."""
        if not date_columns:
            return self
        for col in date_columns:
            if col in self._df.columns:
                self._df[col] = to_datetime_series(self._df[col])
            else:
                logger.warning(f"Date conversion skipped: Column '{col}' not found.")
        return self
