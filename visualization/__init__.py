# caduceus/visualization/__init__.py
#
# Visualization Package API
# Themed Plotly charts and Streamlit UI elements for the operations console.

"""
Initializes the visualization package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Charting Functions ---
from .plots import (
    create_empty_figure,
    plot_ward_occupancy,
    plot_time_series,
    plot_count_distribution,
    plot_age_distribution,
    plot_doctor_workload
)

# --- UI Element Rendering ---
from .ui_elements import (
    render_main_header,
    render_metric_card,
    render_section_unavailable,
    render_source_status,
    section_available,
    get_refresher,
    request_refresh
)

# --- Theming ---
from .themes import caduceus_theme_template


__all__ = [
    # charts
    "create_empty_figure",
    "plot_ward_occupancy",
    "plot_time_series",
    "plot_count_distribution",
    "plot_age_distribution",
    "plot_doctor_workload",

    # ui_elements
    "render_main_header",
    "render_metric_card",
    "render_section_unavailable",
    "render_source_status",
    "section_available",
    "get_refresher",
    "request_refresh",

    # themes
    "caduceus_theme_template"
]
