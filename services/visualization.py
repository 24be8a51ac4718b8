"""Plotly figures for the soil time series."""

from __future__ import annotations

from typing import Optional, Sequence

import plotly.graph_objects as go

from models.records import ChartKind, SoilRecord, Theme

EMPTY_CHART_MESSAGE = "Please upload your dataset to see results."

# (field, legend label, colour)
SERIES = (
    ("moisture", "Moisture", "#3b82f6"),
    ("fertility", "Fertility", "#84cc16"),
    ("temperature", "Temperature (°C)", "#ef4444"),
)

_TEMPLATES = {
    Theme.light: "plotly_white",
    Theme.dark: "plotly_dark",
}


def build_figure(
    records: Sequence[SoilRecord],
    kind: ChartKind | str = ChartKind.line,
    theme: Theme | str = Theme.light,
) -> Optional[go.Figure]:
    """Plot every record in ``records``; ``None`` means show the placeholder."""
    chart_kind = ChartKind(kind)
    if not records:
        return None

    dates = [record.date for record in records]
    figure = go.Figure()
    for field, label, colour in SERIES:
        values = [getattr(record, field) for record in records]
        figure.add_trace(_trace(chart_kind, dates, values, label, colour))

    figure.update_layout(
        template=_TEMPLATES[Theme(theme)],
        barmode="group",
        margin={"t": 10, "r": 20, "l": 10, "b": 10},
        legend={"orientation": "h", "font": {"size": 14}},
        xaxis={"title": "date", "type": "category"},
        height=320,
    )
    return figure


def _trace(kind: ChartKind, dates, values, label: str, colour: str):
    if kind is ChartKind.bar:
        return go.Bar(x=dates, y=values, name=label, marker_color=colour)
    if kind is ChartKind.area:
        return go.Scatter(
            x=dates,
            y=values,
            name=label,
            mode="lines",
            line={"color": colour, "width": 2, "shape": "spline"},
            fill="tozeroy",
            fillcolor=_with_opacity(colour, 0.3),
        )
    return go.Scatter(
        x=dates,
        y=values,
        name=label,
        mode="lines",
        line={"color": colour, "width": 2, "shape": "spline"},
    )


def _with_opacity(hex_colour: str, opacity: float) -> str:
    red, green, blue = (int(hex_colour[i : i + 2], 16) for i in (1, 3, 5))
    return f"rgba({red}, {green}, {blue}, {opacity})"
