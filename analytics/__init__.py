# caduceus/analytics/__init__.py
#
# Analytics Package API
# Entity resolution, time bucketing, metric calculators and the orchestrated
# aggregation pass that turns raw collections into dashboard statistics.

"""
Initializes the analytics package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Derived Entities ---
from .models import (
    AnalyticsSnapshot,
    RefreshState,
    TimeSeries,
    WardOccupancy,
    DoctorWorkloadSummary,
    SourceStatus
)

# --- Entity Resolution ---
# Ordered fallback chain matching admissions to wards; age derivation.
from .resolution import (
    WARD_MATCHERS,
    resolve_ward_for_admission,
    attribute_admissions,
    derive_age,
    age_group
)

# --- Time Bucketing ---
from .bucketing import (
    last_n_days,
    last_n_months,
    group_by_date,
    group_by_month,
    build_series
)

# --- Metric Calculators ---
from .metrics import (
    percentage,
    average_length_of_stay,
    top_n,
    workload_balance,
    efficiency_score,
    appointment_rates,
    count_statuses
)

# --- Aggregation & Orchestration ---
from .aggregation import SECTION_SOURCES, WIDGET_SECTIONS, build_snapshot, section_available
from .orchestrator import AnalyticsOrchestrator, BackgroundRefresher


__all__ = [
    # Models
    "AnalyticsSnapshot",
    "RefreshState",
    "TimeSeries",
    "WardOccupancy",
    "DoctorWorkloadSummary",
    "SourceStatus",

    # Resolution
    "WARD_MATCHERS",
    "resolve_ward_for_admission",
    "attribute_admissions",
    "derive_age",
    "age_group",

    # Bucketing
    "last_n_days",
    "last_n_months",
    "group_by_date",
    "group_by_month",
    "build_series",

    # Metrics
    "percentage",
    "average_length_of_stay",
    "top_n",
    "workload_balance",
    "efficiency_score",
    "appointment_rates",
    "count_statuses",

    # Orchestration
    "SECTION_SOURCES",
    "WIDGET_SECTIONS",
    "section_available",
    "build_snapshot",
    "AnalyticsOrchestrator",
    "BackgroundRefresher",
]
