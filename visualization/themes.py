# caduceus/visualization/themes.py
#
# Centralized Plotting Theme
# One Plotly template shared by every chart in the console so ward, clinic
# and patient views look alike.

import logging

import plotly.graph_objects as go

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in themes.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

caduceus_theme_template = go.layout.Template(
    layout=go.Layout(
        font=dict(family="sans-serif", size=12, color=settings.theme.text),
        title=dict(font=dict(size=16, family="sans-serif"), x=0.02, xanchor='left'),
        paper_bgcolor=settings.theme.secondary_background,
        plot_bgcolor=settings.theme.secondary_background,
        colorway=settings.theme.plotly_colorway,
        xaxis=dict(
            showgrid=False,
            showline=True,
            linecolor=settings.theme.text,
            zeroline=False,
            ticks='outside',
            title_standoff=10
        ),
        yaxis=dict(
            showgrid=True,
            gridcolor='#E5E7EB',
            showline=False,
            zeroline=False,
            rangemode='tozero',
            title_standoff=10
        ),
        legend=dict(
            orientation='h',
            yanchor='bottom',
            y=1.02,
            xanchor='right',
            x=1,
            bgcolor=settings.theme.secondary_background
        ),
        margin=dict(l=60, r=30, t=70, b=60),
        hoverlabel=dict(bgcolor="#FFFFFF", font_size=12, font_family="sans-serif"),
        hovermode='x unified'
    )
)

logger.debug("Caduceus Plotly theme template created.")
