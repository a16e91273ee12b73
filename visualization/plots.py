# caduceus/visualization/plots.py
#
# Operations Chart Factory
# Turns derived entities (ward occupancy, time series, count dictionaries)
# into themed Plotly figures. No analytics happen here.

import html
import logging
from typing import Dict, Optional, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

try:
    from config.settings import settings
    from analytics.models import DoctorWorkloadSummary, TimeSeries, WardOccupancy
    from .themes import caduceus_theme_template
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in plots.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class OperationsChartFactory:
    """A factory class for creating standardized hospital operations charts."""

    def __init__(self, theme_template: go.layout.Template):
        self.theme = theme_template
        px.defaults.template = self.theme

    def create_empty_figure(self, title: str, message: str = "No data available.") -> go.Figure:
        """Creates a themed, blank figure with a user-friendly message."""
        fig = go.Figure()
        fig.update_layout(template=self.theme, title_text=f'<b>{title}</b>',
                          xaxis={'visible': False}, yaxis={'visible': False})
        fig.add_annotation(text=message, xref="paper", yref="paper", x=0.5, y=0.5, showarrow=False, font_size=14)
        return fig

    def plot_ward_occupancy(self, wards: Sequence[WardOccupancy], title: str = "Ward Occupancy") -> go.Figure:
        """Stacked occupied/available bars per ward; bars always total capacity."""
        if not wards:
            return self.create_empty_figure(title)
        names = [w.ward_name for w in wards]
        fig = go.Figure()
        fig.add_trace(go.Bar(
            x=names, y=[w.occupied_beds for w in wards], name='Occupied',
            marker_color=settings.theme.occupied,
            customdata=[w.occupancy_rate for w in wards],
            hovertemplate="%{y} occupied (%{customdata}%)<extra></extra>",
        ))
        fig.add_trace(go.Bar(
            x=names, y=[w.available_beds for w in wards], name='Available',
            marker_color=settings.theme.available,
            hovertemplate="%{y} available<extra></extra>",
        ))
        fig.update_layout(template=self.theme, title_text=f'<b>{title}</b>', barmode='stack',
                          yaxis_title="Beds", xaxis_title=None)
        return fig

    def plot_time_series(
        self, series: Sequence[TimeSeries], title: str, y_axis_title: str,
        colors: Optional[Sequence[str]] = None, as_bars: bool = False,
    ) -> go.Figure:
        """One line (or bar group) per TimeSeries, sharing the label axis."""
        populated = [s for s in series if len(s)]
        if not populated:
            return self.create_empty_figure(title)
        fig = go.Figure()
        for i, ts in enumerate(populated):
            color = colors[i] if colors and i < len(colors) else None
            hovertemplate = f"<b>%{{x}}</b><br>{html.escape(ts.name or y_axis_title)}: %{{y:,}}<extra></extra>"
            if as_bars:
                fig.add_trace(go.Bar(x=ts.labels, y=ts.values, name=ts.name, marker_color=color,
                                     hovertemplate=hovertemplate))
            else:
                fig.add_trace(go.Scatter(x=ts.labels, y=ts.values, name=ts.name, mode='lines+markers',
                                         line=dict(color=color, width=2), hovertemplate=hovertemplate))
        fig.update_layout(template=self.theme, title_text=f'<b>{title}</b>', yaxis_title=y_axis_title,
                          xaxis_title=None, showlegend=len(populated) > 1)
        return fig

    def plot_count_distribution(
        self, counts: Dict[str, int], title: str, label: str = "Category",
        color_map: Optional[Dict[str, str]] = None, as_pie: bool = False,
    ) -> go.Figure:
        """Bar (or donut) chart of a category -> count mapping."""
        if not counts or sum(counts.values()) == 0:
            return self.create_empty_figure(title)
        df = pd.DataFrame({label: list(counts.keys()), 'count': list(counts.values())})
        if as_pie:
            fig = px.pie(df, names=label, values='count', title=f'<b>{title}</b>', hole=0.45,
                         color=label, color_discrete_map=color_map or {})
            fig.update_traces(textinfo='label+value')
            return fig
        fig = px.bar(df, x=label, y='count', title=f'<b>{title}</b>', text_auto=True,
                     color=label if color_map else None, color_discrete_map=color_map or {})
        fig.update_layout(yaxis_title=None, xaxis_title=label, showlegend=False,
                          uniformtext_minsize=8, uniformtext_mode='hide')
        fig.update_traces(textposition="outside", cliponaxis=False)
        return fig

    def plot_age_distribution(self, age_groups: Dict[str, int], title: str = "Patients by Age Group") -> go.Figure:
        """Histogram over the configured age bands, in band order."""
        if not age_groups:
            return self.create_empty_figure(title)
        fig = go.Figure(go.Bar(x=list(age_groups.keys()), y=list(age_groups.values()),
                               marker_color=settings.theme.primary, text=list(age_groups.values()),
                               textposition='outside'))
        fig.update_layout(template=self.theme, title_text=f'<b>{title}</b>',
                          yaxis_title="Number of Patients", xaxis_title="Age")
        return fig

    def plot_doctor_workload(self, doctors: Sequence[DoctorWorkloadSummary], title: str) -> go.Figure:
        """Completed / scheduled / cancelled appointments per doctor, stacked."""
        if not doctors:
            return self.create_empty_figure(title)
        names = [d.name for d in doctors]
        fig = go.Figure()
        for field, label, color in (
            ('completed', 'Completed', settings.theme.completed),
            ('scheduled', 'Scheduled', settings.theme.scheduled),
            ('cancelled', 'Cancelled', settings.theme.cancelled),
        ):
            fig.add_trace(go.Bar(x=names, y=[getattr(d, field) for d in doctors], name=label, marker_color=color))
        fig.update_layout(template=self.theme, title_text=f'<b>{title}</b>', barmode='stack',
                          yaxis_title="Appointments", xaxis_title=None)
        return fig


# --- Singleton Instance and Public API ---
_chart_factory = OperationsChartFactory(caduceus_theme_template)

create_empty_figure = _chart_factory.create_empty_figure
plot_ward_occupancy = _chart_factory.plot_ward_occupancy
plot_time_series = _chart_factory.plot_time_series
plot_count_distribution = _chart_factory.plot_count_distribution
plot_age_distribution = _chart_factory.plot_age_distribution
plot_doctor_workload = _chart_factory.plot_doctor_workload
