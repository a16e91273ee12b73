# caduceus/data_processing/__init__.py
#
# Data Processing Package API
# Fetching, validating and holding the raw source collections that feed the
# analytics engine.

"""
Initializes the data_processing package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Source Schemas & Loading ---
# Turn raw JSON payloads into consistently typed DataFrames.
from .loaders import (
    Source,
    SourceSchema,
    SOURCE_SCHEMAS,
    empty_collection,
    prepare_collection
)

# --- Data Preparation & Cleaning ---
from .pipeline import DataPipeline

# --- Fetch Boundary ---
# The only place in the system that raises for unavailable data.
from .api_client import (
    HospitalApiClient,
    SourceUnavailable,
    AuthExpired,
    Forbidden,
    ServerError,
    NetworkError
)

# --- Snapshot Holder ---
from .record_store import RecordStore, SourceSnapshot


__all__ = [
    # --- Loading ---
    "Source",
    "SourceSchema",
    "SOURCE_SCHEMAS",
    "empty_collection",
    "prepare_collection",

    # --- Preparation ---
    "DataPipeline",

    # --- Fetching ---
    "HospitalApiClient",
    "SourceUnavailable",
    "AuthExpired",
    "Forbidden",
    "ServerError",
    "NetworkError",

    # --- Storage ---
    "RecordStore",
    "SourceSnapshot",
]
