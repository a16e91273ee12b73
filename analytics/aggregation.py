# caduceus/analytics/aggregation.py
#
# Aggregation Pass
# Builds every derived section of the dashboard from one RecordStore
# snapshot. Each section is a total function of its input frames; the
# snapshot builder computes them independently so that a failure in one
# section (or in one source) leaves the others intact.

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import pandas as pd

try:
    from config.settings import settings
    from data_processing.helpers import is_missing, normalize_identifier, to_datetime_series
    from data_processing.loaders import Source
    from data_processing.record_store import RecordStore
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in aggregation.py: A core dependency is missing. {e}", exc_info=True)
    raise

from .bucketing import (
    build_series,
    day_label,
    daily_counts,
    group_by_date,
    group_by_month,
    last_n_days,
    last_n_months,
    month_label,
    monthly_counts,
)
from .metrics import (
    ADMISSION_STATUSES,
    APPOINTMENT_STATUSES,
    appointment_rates,
    average_length_of_stay,
    count_statuses,
    mean_rate,
    percentage,
    top_n,
    workload_balance,
)
from .models import (
    AdmissionAnalytics,
    AnalyticsSnapshot,
    AppointmentAnalytics,
    DoctorWorkloadSummary,
    PatientDemographics,
    RefreshState,
    SourceStatus,
    StatusDistribution,
    TimeSeries,
    WardOccupancy,
    WorkloadOverview,
)
from .resolution import age_group, attribute_admissions, derive_age

logger = logging.getLogger(__name__)

S = TypeVar('S')

_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2})(?::\d{2})?')

# Sources each dashboard section depends on; the UI marks a section
# unavailable when any of them failed this cycle.
SECTION_SOURCES: Dict[str, Tuple[str, ...]] = {
    'ward_occupancy': (Source.WARDS.value, Source.ACTIVE_ADMISSIONS.value),
    'status_distribution': (Source.ACTIVE_ADMISSIONS.value, Source.ALL_ADMISSIONS.value),
    'admissions': (Source.ALL_ADMISSIONS.value,),
    'appointments': (Source.APPOINTMENTS.value,),
    'workload': (Source.DOCTORS.value, Source.APPOINTMENTS.value),
    'demographics': (Source.PATIENTS.value,),
    # Widgets drawn from part of a section but fed by other sources.
    'bed_occupancy': (Source.WARDS.value, Source.ACTIVE_ADMISSIONS.value),
    'ward_types': (Source.WARDS.value,),
    'patient_activity': (Source.APPOINTMENTS.value,),
}

# Computed sections a widget reads from; an error in any of them hides it.
WIDGET_SECTIONS: Dict[str, Tuple[str, ...]] = {
    'bed_occupancy': ('ward_occupancy', 'admissions'),
    'ward_types': ('admissions',),
    'patient_activity': ('demographics',),
}


def section_available(snapshot: Optional[AnalyticsSnapshot], section: str) -> bool:
    """True when the widget's sections computed and all of its sources loaded this cycle."""
    if snapshot is None:
        return False
    if any(name in snapshot.section_errors for name in WIDGET_SECTIONS.get(section, (section,))):
        return False
    return snapshot.is_available(*SECTION_SOURCES.get(section, ()))


# --- Shared helpers ---

def _dates(df: pd.DataFrame, column: str) -> pd.Series:
    """Calendar dates of `column` (NaT for unparseable) aligned to `df`."""
    if df.empty or column not in df.columns:
        return pd.Series(pd.NaT, index=df.index, dtype='datetime64[ns]')
    return to_datetime_series(df[column], normalize=True)


def _on_day(df: pd.DataFrame, column: str, day: date) -> pd.Series:
    return _dates(df, column) == pd.Timestamp(day)


def _status(df: pd.DataFrame) -> pd.Series:
    if 'status' not in df.columns:
        return pd.Series(index=df.index, dtype=object)
    return df['status']


def _count_status(status: str) -> Callable[[pd.DataFrame], int]:
    return lambda group: int((_status(group) == status).sum())


def _text(value: Any, default: str) -> str:
    return default if is_missing(value) else str(value).strip()


def _capacity(value: Any) -> int:
    default = settings.analytics.bed_capacity
    try:
        capacity = int(float(value))
    except (TypeError, ValueError):
        return default
    return capacity if capacity > 0 else default


# --- Ward occupancy ---

def compute_ward_occupancy(wards: pd.DataFrame, active_admissions: pd.DataFrame) -> Tuple[WardOccupancy, ...]:
    """
    Occupancy per ward from the active-admissions feed.

    Occupied beds are capped at the ward's capacity so that occupied and
    available always add up to capacity; the excess is reported as overflow.
    """
    if wards.empty:
        return ()

    active = active_admissions
    if not active.empty and 'status' in active.columns:
        status = _status(active)
        active = active[status.isna() | (status == 'ACTIVE')]

    ward_records = wards.to_dict('records')
    attributed = attribute_admissions(active, ward_records)

    occupancy = []
    for position, ward in enumerate(ward_records):
        capacity = _capacity(ward.get('bed_capacity'))
        matched = attributed.get(position, [])
        occupied = min(len(matched), capacity)
        occupancy.append(WardOccupancy(
            ward_id=normalize_identifier(ward.get('ward_id')),
            ward_name=_text(ward.get('ward_name'), f"Ward #{position + 1}"),
            ward_type=_text(ward.get('ward_type'), 'general'),
            bed_capacity=capacity,
            occupied_beds=occupied,
            available_beds=capacity - occupied,
            occupancy_rate=percentage(occupied, capacity),
            overflow=len(matched) - occupied,
            admission_ids=tuple(normalize_identifier(a.get('admission_id')) for a in matched),
        ))
    overflowing = [w.ward_name for w in occupancy if w.overflow]
    if overflowing:
        logger.warning(f"Active admissions exceed capacity in wards: {', '.join(overflowing)}")
    return tuple(occupancy)


# --- Admission status distribution ---

def compute_status_distribution(
    active_admissions: pd.DataFrame, all_admissions: pd.DataFrame, today: date
) -> StatusDistribution:
    """
    Active count from the live feed plus same-day slices of the admission
    history. Transfers close an admission, so they are dated by discharge_date.
    """
    status = _status(all_admissions)
    admitted_today = _on_day(all_admissions, 'admission_date', today)
    closed_today = _on_day(all_admissions, 'discharge_date', today)
    return StatusDistribution(
        active=len(active_admissions),
        admitted_today=int(admitted_today.sum()),
        discharged_today=int(((status == 'DISCHARGED') & closed_today).sum()),
        transferred_today=int(((status == 'TRANSFERRED') & closed_today).sum()),
        all_time=count_statuses(status, ADMISSION_STATUSES),
        total=len(all_admissions),
    )


# --- Admission trends & hospital-wide beds ---

def compute_admission_analytics(
    wards: pd.DataFrame,
    all_admissions: pd.DataFrame,
    ward_occupancy: Tuple[WardOccupancy, ...],
    today: date,
) -> AdmissionAnalytics:
    cfg = settings.analytics
    days = last_n_days(cfg.admission_trend_days, today)

    ward_types: Dict[str, int] = {}
    if not wards.empty:
        types = wards['ward_type'].map(lambda v: _text(v, 'general'))
        ward_types = {str(k): int(v) for k, v in types.value_counts(sort=False).items()}

    total_beds = sum(w.bed_capacity for w in ward_occupancy)
    occupied_beds = sum(w.occupied_beds for w in ward_occupancy)

    admitted_on = _dates(all_admissions, 'admission_date')
    window_admissions = {
        key: int((admitted_on >= pd.Timestamp(today - timedelta(days=span))).sum())
        for key, span in cfg.admission_window_options.items()
    }

    return AdmissionAnalytics(
        admissions_trend=daily_counts(all_admissions, 'admission_date', days, name="Admissions"),
        discharges_trend=daily_counts(all_admissions, 'discharge_date', days, name="Discharges"),
        average_length_of_stay=average_length_of_stay(all_admissions),
        ward_types=ward_types,
        total_beds=total_beds,
        occupied_beds=occupied_beds,
        occupancy_rate=percentage(occupied_beds, total_beds),
        window_admissions=window_admissions,
    )


# --- Appointment analytics ---

def _appointment_hour(value: Any) -> Optional[int]:
    if is_missing(value):
        return None
    match = _HOUR_PATTERN.match(str(value))
    if not match:
        return None
    hour = int(match.group(1))
    return hour if 0 <= hour <= 23 else None


def compute_appointment_analytics(appointments: pd.DataFrame, today: date) -> AppointmentAnalytics:
    cfg = settings.analytics
    status = _status(appointments)
    on_today = _on_day(appointments, 'appointment_date', today)

    hours = (
        appointments['appointment_time'].map(_appointment_hour).dropna().astype(int)
        if 'appointment_time' in appointments.columns else pd.Series(dtype=int)
    )
    hourly_counts = hours.value_counts().sort_index()
    hourly = TimeSeries(
        name="Appointments by hour",
        points=tuple((f"{hour:02d}:00", int(count)) for hour, count in hourly_counts.items()),
    )

    days = last_n_days(cfg.appointment_trend_days, today)
    by_day = group_by_date(appointments, 'appointment_date')
    daily_trend = {
        'total': build_series(days, by_day, len, day_label, name="Total"),
        'completed': build_series(days, by_day, _count_status('COMPLETED'), day_label, name="Completed"),
        'scheduled': build_series(days, by_day, _count_status('SCHEDULED'), day_label, name="Scheduled"),
        'cancelled': build_series(days, by_day, _count_status('CANCELLED'), day_label, name="Cancelled"),
    }

    months = last_n_months(cfg.monthly_trend_months, today)
    by_month = group_by_month(appointments, 'appointment_date')
    monthly_rate = build_series(
        months, by_month,
        lambda group: percentage(_count_status('COMPLETED')(group), len(group)),
        month_label, name="Completion rate",
    )

    return AppointmentAnalytics(
        rates=appointment_rates(status),
        status_counts=count_statuses(status, APPOINTMENT_STATUSES),
        today_total=int(on_today.sum()),
        today_completed=int((on_today & (status == 'COMPLETED')).sum()),
        hourly_distribution=hourly,
        daily_trend=daily_trend,
        monthly_volume=build_series(months, by_month, len, month_label, name="Appointments"),
        monthly_completion_rate=monthly_rate,
    )


# --- Doctor workload ---

def _week_start(today: date) -> date:
    """Most recent Sunday on or before `today`."""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def summarize_doctor(doctor: Dict[str, Any], doctor_appointments: pd.DataFrame, today: date) -> DoctorWorkloadSummary:
    doctor_id = normalize_identifier(doctor.get('doctor_id'))
    rates = appointment_rates(_status(doctor_appointments))
    appointment_days = _dates(doctor_appointments, 'appointment_date')
    on_today = appointment_days == pd.Timestamp(today)
    today_completed = int((on_today & (_status(doctor_appointments) == 'COMPLETED')).sum())
    today_total = int(on_today.sum())

    return DoctorWorkloadSummary(
        doctor_id=doctor_id,
        name=_text(doctor.get('name'), f"Doctor {doctor_id or 'unknown'}"),
        specialization=_text(doctor.get('specialization'), 'Unknown'),
        total=rates.total,
        completed=rates.completed,
        scheduled=rates.scheduled,
        cancelled=rates.cancelled,
        no_show=rates.no_show,
        completion_rate=rates.completion_rate,
        efficiency=percentage(rates.completed + rates.scheduled, rates.total),
        efficiency_score=rates.efficiency_score,
        today_total=today_total,
        today_completed=today_completed,
        today_pending=today_total - today_completed,
        weekly_total=int((appointment_days >= pd.Timestamp(_week_start(today))).sum()),
    )


def compute_workload(doctors: pd.DataFrame, appointments: pd.DataFrame, today: date) -> WorkloadOverview:
    cfg = settings.analytics
    if doctors.empty:
        return WorkloadOverview()

    appointment_doctor = (
        appointments['doctor_id'].map(normalize_identifier)
        if 'doctor_id' in appointments.columns else pd.Series(index=appointments.index, dtype=object)
    )

    summaries: List[DoctorWorkloadSummary] = []
    for doctor in doctors.to_dict('records'):
        doctor_id = normalize_identifier(doctor.get('doctor_id'))
        own = appointments[appointment_doctor == doctor_id] if doctor_id is not None else appointments.iloc[0:0]
        summaries.append(summarize_doctor(doctor, own, today))

    active = [d for d in summaries if d.total > 0]
    busy = [d for d in summaries if d.today_total > cfg.busy_doctor_daily_threshold]

    specialization_workload: Dict[str, int] = {}
    for doctor in summaries:
        specialization_workload[doctor.specialization] = (
            specialization_workload.get(doctor.specialization, 0) + doctor.total
        )

    days = last_n_days(cfg.activity_trend_days, today)
    trends = []
    for doctor in top_n(active, 'total', cfg.top_doctors_trend_count):
        own = appointments[appointment_doctor == doctor.doctor_id]
        trends.append(daily_counts(own, 'appointment_date', days, name=doctor.name))

    top_performer = top_n(active, 'completion_rate', 1)
    busiest = top_n(active, 'total', 1)

    return WorkloadOverview(
        doctors=tuple(summaries),
        total_doctors=len(summaries),
        active_doctors=len(active),
        busy_doctors=len(busy),
        total_appointments=sum(d.total for d in summaries),
        total_completed=sum(d.completed for d in summaries),
        today_total=sum(d.today_total for d in summaries),
        average_completion_rate=mean_rate(d.completion_rate for d in summaries),
        workload_balance=workload_balance(len(busy), len(summaries)),
        top_performer=top_performer[0] if top_performer else None,
        busiest_doctor=busiest[0] if busiest else None,
        specialization_workload=specialization_workload,
        top_doctors=tuple(top_n(active, 'total', cfg.top_doctors_count)),
        top_doctor_trends=tuple(trends),
    )


# --- Patient demographics ---

def age_histogram(dates_of_birth: pd.Series, today: date) -> Tuple[Dict[str, int], int]:
    """
    Counts per configured age band plus the number of patients without a
    usable date of birth. Every band is always present.
    """
    bands = settings.analytics.age_bands.bands
    histogram = {label: 0 for label, _ in bands}
    unknown = 0
    for dob in dates_of_birth:
        label = age_group(derive_age(dob, today), bands)
        if label is None:
            unknown += 1
        else:
            histogram[label] += 1
    return histogram, unknown


def compute_demographics(patients: pd.DataFrame, appointments: pd.DataFrame, today: date) -> PatientDemographics:
    cfg = settings.analytics
    dob = patients['date_of_birth'] if 'date_of_birth' in patients.columns else pd.Series(dtype=object)
    histogram, unknown = age_histogram(dob, today)

    gender_counts: Dict[str, int] = {}
    if not patients.empty and 'gender' in patients.columns:
        genders = patients['gender'].map(lambda v: _text(v, 'Unknown').title())
        gender_counts = {str(k): int(v) for k, v in genders.value_counts(sort=False).items()}

    months = last_n_months(cfg.monthly_trend_months, today)
    days = last_n_days(cfg.activity_trend_days, today)
    by_day = group_by_date(appointments, 'appointment_date')

    def _unique_patients(group: pd.DataFrame) -> int:
        if group.empty or 'patient_id' not in group.columns:
            return 0
        return int(group['patient_id'].map(normalize_identifier).dropna().nunique())

    return PatientDemographics(
        total_patients=len(patients),
        age_groups=histogram,
        patients_without_age=unknown,
        gender_counts=gender_counts,
        monthly_registrations=monthly_counts(patients, 'registration_date', months, name="Registrations"),
        daily_unique_patients=build_series(days, by_day, _unique_patients, day_label, name="Unique patients"),
        daily_appointments=build_series(days, by_day, len, day_label, name="Appointments"),
    )


# --- Snapshot builder ---

def _section(name: str, compute: Callable[[], S], fallback: S, errors: Dict[str, str]) -> S:
    try:
        return compute()
    except Exception as e:
        logger.error(f"Aggregation section '{name}' failed: {e}", exc_info=True)
        errors[name] = str(e)
        return fallback


def build_snapshot(store: RecordStore, as_of: date, generated_at: Optional[datetime] = None) -> AnalyticsSnapshot:
    """
    Computes every section from the current RecordStore contents.

    `as_of` is evaluated once by the caller so every window in the report
    ends on the same day. Failed sources read as empty collections.
    """
    generated_at = generated_at or datetime.now()
    wards = store.collection(Source.WARDS)
    active = store.collection(Source.ACTIVE_ADMISSIONS)
    history = store.collection(Source.ALL_ADMISSIONS)
    appointments = store.collection(Source.APPOINTMENTS)
    doctors = store.collection(Source.DOCTORS)
    patients = store.collection(Source.PATIENTS)

    errors: Dict[str, str] = {}
    occupancy = _section('ward_occupancy', lambda: compute_ward_occupancy(wards, active), (), errors)
    distribution = _section(
        'status_distribution', lambda: compute_status_distribution(active, history, as_of),
        StatusDistribution(), errors,
    )
    admissions = _section(
        'admissions', lambda: compute_admission_analytics(wards, history, occupancy, as_of),
        AdmissionAnalytics(), errors,
    )
    appointment_stats = _section(
        'appointments', lambda: compute_appointment_analytics(appointments, as_of),
        AppointmentAnalytics(), errors,
    )
    workload = _section('workload', lambda: compute_workload(doctors, appointments, as_of), WorkloadOverview(), errors)
    demographics = _section(
        'demographics', lambda: compute_demographics(patients, appointments, as_of),
        PatientDemographics(), errors,
    )

    sources = {
        source.value: SourceStatus(
            source=source.value,
            ok=snap.ok,
            last_updated=snap.last_updated,
            error=snap.error,
            record_count=snap.record_count,
        )
        for source, snap in store.snapshots.items()
    }
    state = RefreshState.PARTIAL_FAILURE if store.failed_sources() else RefreshState.READY

    snapshot = AnalyticsSnapshot(
        as_of=as_of,
        generated_at=generated_at,
        state=state,
        sources=sources,
        section_errors=errors,
        ward_occupancy=occupancy,
        status_distribution=distribution,
        admissions=admissions,
        appointments=appointment_stats,
        workload=workload,
        demographics=demographics,
    )
    logger.info(
        f"Snapshot for {as_of.isoformat()} built: state={state.value}, wards={len(occupancy)}, "
        f"appointments={appointment_stats.rates.total}, failed_sections={len(errors)}"
    )
    return snapshot
