# caduceus/analytics/models.py
#
# Derived Entities
# Immutable pydantic models for everything the aggregation pass produces.
# A fresh set is built on every refresh cycle and never mutated afterwards.

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

Number = Union[int, float]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class RefreshState(str, Enum):
    IDLE = "Idle"
    FETCHING = "Fetching"
    AGGREGATING = "Aggregating"
    READY = "Ready"
    PARTIAL_FAILURE = "PartialFailure"


class TimeSeries(_Frozen):
    """Ordered, gap-free (label, value) points for one trend line."""
    name: str = ""
    points: Tuple[Tuple[str, Number], ...] = ()

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.points]

    @property
    def values(self) -> List[Number]:
        return [value for _, value in self.points]

    def __len__(self) -> int:
        return len(self.points)


class WardOccupancy(_Frozen):
    ward_id: Optional[str] = None
    ward_name: str
    ward_type: str = "general"
    bed_capacity: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: int
    overflow: int = 0
    admission_ids: Tuple[Optional[str], ...] = ()


class StatusDistribution(_Frozen):
    """
    Admission status view.

    `active` comes from the active-admissions feed; the `*_today` slices are
    restricted to today's admission history. `all_time` partitions every
    historical record by status and always sums to `total`.
    """
    active: int = 0
    admitted_today: int = 0
    discharged_today: int = 0
    transferred_today: int = 0
    all_time: Dict[str, int] = Field(default_factory=dict)
    total: int = 0


class AdmissionAnalytics(_Frozen):
    admissions_trend: TimeSeries = Field(default_factory=TimeSeries)
    discharges_trend: TimeSeries = Field(default_factory=TimeSeries)
    average_length_of_stay: float = 0.0
    ward_types: Dict[str, int] = Field(default_factory=dict)
    total_beds: int = 0
    occupied_beds: int = 0
    occupancy_rate: int = 0
    window_admissions: Dict[str, int] = Field(default_factory=dict)


class AppointmentRates(_Frozen):
    total: int = 0
    completed: int = 0
    scheduled: int = 0
    cancelled: int = 0
    no_show: int = 0
    completion_rate: int = 0
    cancellation_rate: int = 0
    no_show_rate: int = 0
    efficiency_score: int = 0


class DoctorWorkloadSummary(_Frozen):
    doctor_id: Optional[str] = None
    name: str
    specialization: str = "Unknown"
    total: int = 0
    completed: int = 0
    scheduled: int = 0
    cancelled: int = 0
    no_show: int = 0
    completion_rate: int = 0
    efficiency: int = 0
    efficiency_score: int = 0
    today_total: int = 0
    today_completed: int = 0
    today_pending: int = 0
    weekly_total: int = 0


class WorkloadOverview(_Frozen):
    doctors: Tuple[DoctorWorkloadSummary, ...] = ()
    total_doctors: int = 0
    active_doctors: int = 0
    busy_doctors: int = 0
    total_appointments: int = 0
    total_completed: int = 0
    today_total: int = 0
    average_completion_rate: int = 0
    workload_balance: str = "Well Balanced"
    top_performer: Optional[DoctorWorkloadSummary] = None
    busiest_doctor: Optional[DoctorWorkloadSummary] = None
    specialization_workload: Dict[str, int] = Field(default_factory=dict)
    top_doctors: Tuple[DoctorWorkloadSummary, ...] = ()
    top_doctor_trends: Tuple[TimeSeries, ...] = ()


class AppointmentAnalytics(_Frozen):
    rates: AppointmentRates = Field(default_factory=AppointmentRates)
    status_counts: Dict[str, int] = Field(default_factory=dict)
    today_total: int = 0
    today_completed: int = 0
    hourly_distribution: TimeSeries = Field(default_factory=TimeSeries)
    daily_trend: Dict[str, TimeSeries] = Field(default_factory=dict)
    monthly_volume: TimeSeries = Field(default_factory=TimeSeries)
    monthly_completion_rate: TimeSeries = Field(default_factory=TimeSeries)


class PatientDemographics(_Frozen):
    total_patients: int = 0
    age_groups: Dict[str, int] = Field(default_factory=dict)
    patients_without_age: int = 0
    gender_counts: Dict[str, int] = Field(default_factory=dict)
    monthly_registrations: TimeSeries = Field(default_factory=TimeSeries)
    daily_unique_patients: TimeSeries = Field(default_factory=TimeSeries)
    daily_appointments: TimeSeries = Field(default_factory=TimeSeries)


class SourceStatus(_Frozen):
    source: str
    ok: bool
    last_updated: Optional[datetime] = None
    error: Optional[str] = None
    record_count: int = 0

    @computed_field
    @property
    def stale(self) -> bool:
        """True when the source failed this cycle or never succeeded."""
        return not self.ok or self.last_updated is None


class AnalyticsSnapshot(_Frozen):
    """Everything one refresh cycle produced, swapped in as a single reference."""
    as_of: date
    generated_at: datetime
    state: RefreshState = RefreshState.READY
    sources: Dict[str, SourceStatus] = Field(default_factory=dict)
    section_errors: Dict[str, str] = Field(default_factory=dict)

    ward_occupancy: Tuple[WardOccupancy, ...] = ()
    status_distribution: StatusDistribution = Field(default_factory=StatusDistribution)
    admissions: AdmissionAnalytics = Field(default_factory=AdmissionAnalytics)
    appointments: AppointmentAnalytics = Field(default_factory=AppointmentAnalytics)
    workload: WorkloadOverview = Field(default_factory=WorkloadOverview)
    demographics: PatientDemographics = Field(default_factory=PatientDemographics)

    def is_available(self, *sources: str) -> bool:
        """True when every named source loaded in this cycle."""
        return all(self.sources.get(s) is not None and self.sources[s].ok for s in sources)
