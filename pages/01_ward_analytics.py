# caduceus/pages/01_ward_analytics.py
#
# Ward Analytics Dashboard
# Bed occupancy, admission status and admission/discharge trends.

import logging
from typing import Optional

import streamlit as st

try:
    from config.settings import settings
    from analytics.models import AnalyticsSnapshot
    from visualization.plots import (
        plot_count_distribution,
        plot_time_series,
        plot_ward_occupancy,
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

_WARD_SOURCES = ("wards", "active_admissions", "all_admissions")


class WardDashboard:
    """An encapsulated class to manage state and rendering for the ward dashboard."""

    def __init__(self):
        st.set_page_config(page_title="Ward Analytics", page_icon="🛏️", layout="wide")
        self.snapshot: Optional[AnalyticsSnapshot] = get_refresher().snapshot
        self.window = self._initialize_state()

    def _initialize_state(self) -> str:
        st.sidebar.header("🛏️ Ward Filters")
        options = list(settings.analytics.admission_window_options)
        labels = {key: f"Last {days} days" for key, days in settings.analytics.admission_window_options.items()}
        return st.sidebar.selectbox(
            "Admissions window",
            options,
            index=options.index(settings.analytics.default_admission_window),
            format_func=labels.get,
        )

    def _render_kpis(self):
        admissions = self.snapshot.admissions
        distribution = self.snapshot.status_distribution
        beds_ok = section_available(self.snapshot, 'bed_occupancy')
        admissions_ok = section_available(self.snapshot, 'admissions')
        cols = st.columns(4)
        with cols[0]:
            render_metric_card("Bed Occupancy", admissions.occupancy_rate if beds_ok else None, unit_suffix="%",
                               help_text=(f"{admissions.occupied_beds} of {admissions.total_beds} beds occupied"
                                          if beds_ok else "Ward or admission data failed to load."))
        with cols[1]:
            render_metric_card("Active Admissions",
                               distribution.active if section_available(self.snapshot, 'status_distribution') else None)
        with cols[2]:
            render_metric_card("Avg. Length of Stay", admissions.average_length_of_stay if admissions_ok else None,
                               kpi_format="{:.1f}", unit_suffix=" days")
        with cols[3]:
            days = settings.analytics.admission_window_options[self.window]
            render_metric_card(f"Admissions ({days}d)",
                               admissions.window_admissions.get(self.window, 0) if admissions_ok else None)

    def _render_occupancy(self):
        st.subheader("Ward Occupancy")
        if not section_available(self.snapshot, 'ward_occupancy'):
            render_section_unavailable(self.snapshot, 'ward_occupancy', request_refresh)
            return
        st.plotly_chart(plot_ward_occupancy(self.snapshot.ward_occupancy), use_container_width=True)
        rows = [
            {
                "Ward": w.ward_name, "Type": w.ward_type, "Occupied": w.occupied_beds,
                "Available": w.available_beds, "Capacity": w.bed_capacity, "Occupancy %": w.occupancy_rate,
                "Overflow": w.overflow,
            }
            for w in self.snapshot.ward_occupancy
        ]
        st.dataframe(rows, use_container_width=True, hide_index=True)

    def _render_status_and_types(self):
        col1, col2 = st.columns(2)
        with col1:
            if section_available(self.snapshot, 'status_distribution'):
                d = self.snapshot.status_distribution
                counts = {
                    "Active": d.active,
                    "Admitted today": d.admitted_today,
                    "Discharged today": d.discharged_today,
                    "Transferred today": d.transferred_today,
                }
                st.plotly_chart(plot_count_distribution(counts, "Admission Status", label="Status", as_pie=True),
                                use_container_width=True)
            else:
                render_section_unavailable(self.snapshot, 'status_distribution', request_refresh)
        with col2:
            if section_available(self.snapshot, 'ward_types'):
                st.plotly_chart(
                    plot_count_distribution(self.snapshot.admissions.ward_types, "Ward Types", label="Type"),
                    use_container_width=True)
            else:
                render_section_unavailable(self.snapshot, 'ward_types', request_refresh)

    def _render_trends(self):
        st.subheader(f"Admissions & Discharges (last {settings.analytics.admission_trend_days} days)")
        if not section_available(self.snapshot, 'admissions'):
            render_section_unavailable(self.snapshot, 'admissions', request_refresh)
            return
        admissions = self.snapshot.admissions
        st.plotly_chart(
            plot_time_series([admissions.admissions_trend, admissions.discharges_trend],
                             "Daily Admissions vs Discharges", "Patients",
                             colors=[settings.theme.occupied, settings.theme.completed]),
            use_container_width=True)
        st.caption(f"All-time status breakdown: {self.snapshot.status_distribution.all_time}")

    def run(self):
        """Main method to render the entire dashboard page."""
        render_main_header("Ward Analytics", "Bed occupancy and patient flow across all wards")
        render_source_status(self.snapshot, _WARD_SOURCES)
        if st.sidebar.button("🔄 Refresh now"):
            request_refresh()

        if self.snapshot is None:
            st.info("Waiting for the first data refresh to complete.")
            return

        self._render_kpis()
        st.divider()
        self._render_occupancy()
        st.divider()
        self._render_status_and_types()
        st.divider()
        self._render_trends()


if __name__ == "__main__":
    dashboard = WardDashboard()
    dashboard.run()
