# caduceus/app.py
#
# Main Application Entry Point
# Landing page of the Caduceus Operations Console. Configures logging, starts
# the shared background refresher and links to every dashboard page.

import logging
import re
from pathlib import Path

import streamlit as st

# --- Core Application Imports ---
try:
    from config.settings import PROJECT_ROOT, settings
except ImportError:
    st.error("FATAL ERROR: The application's configuration `config.settings` could not be loaded. Ensure the file exists and is correct.")
    st.stop()
except Exception as e:
    st.error(f"An unhandled exception occurred during configuration import: {e}")
    st.stop()

# --- Logging Configuration ---
logging.basicConfig(
    level=settings.app.log_level,
    format=settings.app.log_format,
    datefmt=settings.app.log_date_format,
    force=True
)
logger = logging.getLogger(__name__)

from visualization.ui_elements import (  # noqa: E402
    get_refresher,
    render_main_header,
    render_metric_card,
    render_source_status,
    request_refresh,
    section_available,
)

st.set_page_config(
    page_title=f"{settings.app.name} - Overview",
    page_icon="🏥",
    layout="wide",
    initial_sidebar_state="expanded",
    menu_items={
        "Get Help": f"mailto:{settings.app.support_contact}?subject=Help Request - {settings.app.name}",
        "Report a bug": f"mailto:{settings.app.support_contact}?subject=Bug Report - {settings.app.name} v{settings.app.version}",
        "About": f"### {settings.app.name} (v{settings.app.version})\n\n{settings.app_footer_text}"
    }
)


@st.cache_resource
def load_css(path: Path):
    """Loads a CSS file and injects it into the Streamlit app."""
    if not path.is_file():
        logger.debug(f"CSS file not found at {path}. Skipping custom styles.")
        return
    with open(path) as f:
        st.markdown(f"<style>{f.read()}</style>", unsafe_allow_html=True)


load_css(settings.style_css_path)

render_main_header(settings.app.name, "Hospital bed, appointment and workload analytics")

snapshot = get_refresher().snapshot
if snapshot is None:
    st.info("Waiting for the first data refresh to complete.")
else:
    kpis = [
        ("Bed Occupancy", 'bed_occupancy', snapshot.admissions.occupancy_rate, "%"),
        ("Active Admissions", 'status_distribution', snapshot.status_distribution.active, ""),
        ("Appointments Today", 'appointments', snapshot.appointments.today_total, ""),
        ("Active Doctors", 'workload', snapshot.workload.active_doctors, ""),
    ]
    cols = st.columns(len(kpis))
    for col, (title, section, value, suffix) in zip(cols, kpis):
        with col:
            available = section_available(snapshot, section)
            render_metric_card(title, value if available else None, unit_suffix=suffix,
                               help_text=None if available else "A data source for this figure failed to load.")
    if snapshot.state.value == "PartialFailure":
        st.warning("Some data sources failed to load. Affected sections are marked on each dashboard.")

# --- Dynamic Dashboard Navigation ---
st.divider()
st.header("Dashboards")

PAGES_DIR = PROJECT_ROOT / "pages"
DASHBOARD_PAGES = sorted(PAGES_DIR.glob("[0-9]*.py"))

if DASHBOARD_PAGES:
    cols = st.columns(len(DASHBOARD_PAGES))
    for i, page_path in enumerate(DASHBOARD_PAGES):
        cleaned_title = re.sub(r"^\d+_?", "", page_path.stem).replace("_", " ").title()
        icon = {"Ward": "🛏️", "Clinic": "🏥"}.get(cleaned_title.split()[0], "📈")
        with cols[i]:
            with st.container(border=True):
                st.subheader(f"{icon} {cleaned_title}")
                st.page_link(str(page_path.relative_to(PROJECT_ROOT)), label=f"Open {cleaned_title}",
                             use_container_width=True)
else:
    st.warning("No dashboard pages found in the `pages` directory.")

# --- Sidebar Content ---
st.sidebar.title(settings.app.name)
st.sidebar.markdown(f"`Version {settings.app.version}`")
if st.sidebar.button("🔄 Refresh now"):
    request_refresh()
render_source_status(snapshot)
st.sidebar.divider()
st.sidebar.markdown(f"**{settings.app.organization_name}**")
st.sidebar.markdown(f"Support: <a href='mailto:{settings.app.support_contact}'>{settings.app.support_contact}</a>", unsafe_allow_html=True)
st.sidebar.caption(settings.app_footer_text)

logger.info(f"Overview page loaded for {settings.app.name} v{settings.app.version}.")
