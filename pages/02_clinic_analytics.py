# caduceus/pages/02_clinic_analytics.py
#
# Clinic Analytics Dashboard
# Appointment completion, doctor workload and patient demographics.

import logging
from typing import Optional

import streamlit as st

try:
    from config.settings import settings
    from analytics.models import AnalyticsSnapshot
    from visualization.plots import (
        plot_age_distribution,
        plot_count_distribution,
        plot_doctor_workload,
        plot_time_series,
    )
    from visualization.ui_elements import (
        get_refresher,
        render_main_header,
        render_metric_card,
        render_section_unavailable,
        render_source_status,
        request_refresh,
        section_available,
    )
except ImportError as e:
    st.error(f"A required application module could not be loaded. Please check your project structure. Error: {e}")
    st.stop()

logger = logging.getLogger(__name__)

_CLINIC_SOURCES = ("appointments", "doctors", "patients")


class ClinicDashboard:
    """An encapsulated class to manage state and rendering for the clinic dashboard."""

    def __init__(self):
        st.set_page_config(page_title="Clinic Analytics", page_icon="🏥", layout="wide")
        self.snapshot: Optional[AnalyticsSnapshot] = get_refresher().snapshot

    def _render_appointments(self):
        if not section_available(self.snapshot, 'appointments'):
            render_section_unavailable(self.snapshot, 'appointments', request_refresh)
            return
        stats = self.snapshot.appointments
        rates = stats.rates
        cols = st.columns(4)
        with cols[0]:
            render_metric_card("Appointments", rates.total,
                               help_text=f"{stats.today_total} today, {stats.today_completed} completed")
        with cols[1]:
            render_metric_card("Completion Rate", rates.completion_rate, unit_suffix="%")
        with cols[2]:
            render_metric_card("Cancellation Rate", rates.cancellation_rate, unit_suffix="%",
                               help_text=f"No-show rate: {rates.no_show_rate}%")
        with cols[3]:
            render_metric_card("Efficiency Score", rates.efficiency_score,
                               help_text="Completion minus cancellation minus no-show rate.")

        col1, col2 = st.columns(2)
        with col1:
            st.plotly_chart(
                plot_count_distribution(stats.status_counts, "Appointment Status", label="Status",
                                        color_map=settings.theme.status_colors),
                use_container_width=True)
        with col2:
            st.plotly_chart(
                plot_time_series([stats.hourly_distribution], "Appointments by Hour", "Appointments", as_bars=True),
                use_container_width=True)

        trend = stats.daily_trend
        st.plotly_chart(
            plot_time_series(
                [trend.get(k) for k in ('total', 'completed', 'scheduled', 'cancelled') if trend.get(k)],
                f"Daily Appointments (last {settings.analytics.appointment_trend_days} days)", "Appointments",
                colors=[settings.theme.primary, settings.theme.completed, settings.theme.scheduled,
                        settings.theme.cancelled]),
            use_container_width=True)

        col3, col4 = st.columns(2)
        with col3:
            st.plotly_chart(plot_time_series([stats.monthly_volume], "Monthly Volume", "Appointments", as_bars=True),
                            use_container_width=True)
        with col4:
            st.plotly_chart(plot_time_series([stats.monthly_completion_rate], "Monthly Completion Rate", "%"),
                            use_container_width=True)

    def _render_workload(self):
        if not section_available(self.snapshot, 'workload'):
            render_section_unavailable(self.snapshot, 'workload', request_refresh)
            return
        workload = self.snapshot.workload
        cols = st.columns(4)
        with cols[0]:
            render_metric_card("Active Doctors", workload.active_doctors,
                               help_text=f"{workload.total_doctors} doctors on record")
        with cols[1]:
            render_metric_card("Busy Today", workload.busy_doctors,
                               help_text=f"More than {settings.analytics.busy_doctor_daily_threshold} appointments today")
        with cols[2]:
            render_metric_card("Avg. Completion", workload.average_completion_rate, unit_suffix="%")
        with cols[3]:
            st.metric("Workload Balance", workload.workload_balance)

        if workload.top_performer or workload.busiest_doctor:
            st.caption(
                f"Top performer: {workload.top_performer.name if workload.top_performer else 'N/A'} · "
                f"Busiest: {workload.busiest_doctor.name if workload.busiest_doctor else 'N/A'}"
            )

        col1, col2 = st.columns(2)
        with col1:
            st.plotly_chart(plot_doctor_workload(workload.top_doctors, "Top Doctors by Volume"),
                            use_container_width=True)
        with col2:
            st.plotly_chart(
                plot_count_distribution(workload.specialization_workload, "Workload by Specialization",
                                        label="Specialization", as_pie=True),
                use_container_width=True)
        st.plotly_chart(
            plot_time_series(workload.top_doctor_trends,
                             f"Top Doctors, last {settings.analytics.activity_trend_days} days", "Appointments"),
            use_container_width=True)

    def _render_demographics(self):
        if not section_available(self.snapshot, 'demographics'):
            render_section_unavailable(self.snapshot, 'demographics', request_refresh)
            return
        demographics = self.snapshot.demographics
        col1, col2 = st.columns(2)
        with col1:
            st.plotly_chart(plot_age_distribution(demographics.age_groups), use_container_width=True)
            if demographics.patients_without_age:
                st.caption(f"{demographics.patients_without_age} patients have no usable date of birth.")
        with col2:
            st.plotly_chart(
                plot_count_distribution(demographics.gender_counts, "Patients by Gender", label="Gender", as_pie=True),
                use_container_width=True)
        st.plotly_chart(
            plot_time_series([demographics.monthly_registrations], "Monthly Registrations", "Patients", as_bars=True),
            use_container_width=True)
        if section_available(self.snapshot, 'patient_activity'):
            st.plotly_chart(
                plot_time_series([demographics.daily_unique_patients, demographics.daily_appointments],
                                 "Patient Activity", "Count"),
                use_container_width=True)
        else:
            render_section_unavailable(self.snapshot, 'patient_activity', request_refresh)

    def run(self):
        """Main method to render the entire dashboard page."""
        render_main_header("Clinic Analytics", "Appointments, doctor workload and patient demographics")
        render_source_status(self.snapshot, _CLINIC_SOURCES)
        if st.sidebar.button("🔄 Refresh now"):
            request_refresh()

        if self.snapshot is None:
            st.info("Waiting for the first data refresh to complete.")
            return

        tab_appointments, tab_doctors, tab_patients = st.tabs(["📅 Appointments", "🩺 Doctor Workload", "👥 Patients"])
        with tab_appointments:
            self._render_appointments()
        with tab_doctors:
            self._render_workload()
        with tab_patients:
            self._render_demographics()


if __name__ == "__main__":
    dashboard = ClinicDashboard()
    dashboard.run()
