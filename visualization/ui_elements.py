# caduceus/visualization/ui_elements.py
#
# Streamlit UI Elements
# Shared headers, metric cards and per-source availability indicators.

import concurrent.futures
import logging
from typing import Callable, Iterable, Optional

import streamlit as st

try:
    from config.settings import settings
    from analytics.aggregation import SECTION_SOURCES, WIDGET_SECTIONS, section_available
    from analytics.models import AnalyticsSnapshot
    from analytics.orchestrator import BackgroundRefresher
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in ui_elements.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


def render_main_header(title: str, subtitle: str) -> None:
    """Renders a standardized main page header."""
    header_cols = st.columns([0.08, 0.92])
    with header_cols[0]:
        st.markdown("### 🏥")
    with header_cols[1]:
        st.title(title)
        st.subheader(subtitle)
    st.divider()


def render_metric_card(
    title: str,
    value: Optional[float],
    kpi_format: str = "{:,.0f}",
    unit_suffix: str = "",
    help_text: Optional[str] = None,
    delta: Optional[str] = None,
) -> None:
    """Renders a Streamlit metric card; a missing value shows as N/A."""
    value_str = f"{kpi_format.format(value)}{unit_suffix}" if value is not None else "N/A"
    st.metric(label=title, value=value_str, delta=delta, delta_color="off", help=help_text)


def render_section_unavailable(
    snapshot: Optional[AnalyticsSnapshot],
    section: str,
    on_retry: Callable[[], None],
    key: Optional[str] = None,
) -> None:
    """'Failed to load' notice for one section with a retry action."""
    messages = []
    if snapshot is not None:
        for source in SECTION_SOURCES.get(section, ()):
            status = snapshot.sources.get(source)
            if status is not None and not status.ok:
                messages.append(status.error or f"Failed to load {source.replace('_', ' ')} data.")
        if any(name in snapshot.section_errors for name in WIDGET_SECTIONS.get(section, (section,))):
            messages.append("This section could not be computed.")
    st.error(" ".join(dict.fromkeys(messages)) or "Data is not available yet.")
    if st.button("🔄 Retry", key=key or f"retry_{section}"):
        on_retry()


def render_source_status(snapshot: Optional[AnalyticsSnapshot], sources: Optional[Iterable[str]] = None) -> None:
    """Sidebar list of sources with their last successful update."""
    st.sidebar.subheader("Data Sources")
    if snapshot is None:
        st.sidebar.info("Waiting for the first refresh...")
        return
    wanted = list(sources) if sources is not None else list(snapshot.sources)
    for name in wanted:
        status = snapshot.sources.get(name)
        if status is None:
            continue
        icon = "🟢" if status.ok else "🔴"
        updated = status.last_updated.strftime("%H:%M:%S") if status.last_updated else "never"
        label = name.replace('_', ' ').title()
        st.sidebar.markdown(f"{icon} **{label}** · {status.record_count} records · updated {updated}")
    st.sidebar.caption(
        f"Snapshot for {snapshot.as_of.isoformat()} generated {snapshot.generated_at:%H:%M:%S} "
        f"({snapshot.state.value}). Refreshes every {settings.analytics.refresh_interval_seconds // 60} min."
    )


@st.cache_resource
def get_refresher() -> BackgroundRefresher:
    """One background refresher per server process, shared by every page."""
    refresher = BackgroundRefresher().start()
    if not refresher.wait_until_ready(timeout=settings.api.timeout_seconds + 5):
        logger.warning("First refresh did not finish in time; pages will show a waiting state.")
    return refresher


def request_refresh() -> None:
    """Retry/refresh button handler: waits for the coalesced cycle, then reruns."""
    future = get_refresher().request_refresh()
    with st.spinner("Refreshing data..."):
        try:
            future.result(timeout=settings.api.timeout_seconds + 5)
        except concurrent.futures.TimeoutError:
            st.warning("Refresh is taking longer than usual; showing the last snapshot.")
    st.rerun()
