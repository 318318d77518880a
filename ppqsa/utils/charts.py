from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import plotly.graph_objects as go

from ppqsa.domain.schemas import PillarAverage
from ppqsa.domain.services import MAX_PILLAR_SCORE, MAX_TOTAL_SCORE
from ppqsa.domain.trends import TrendSeries

# Band colours, lowest to highest
BAND_STOPS: list[tuple[float, str]] = [
    (0.0, "#D73027"),
    (1.5, "#FC8D59"),
    (2.25, "#91CF60"),
    (3.0, "#1A9850"),
]


def score_color(value: float, stops: list[tuple[float, str]] = BAND_STOPS) -> str:
    """Colour of the highest stop not above ``value``."""
    color = stops[0][1]
    for threshold, c in stops:
        if value >= threshold:
            color = c
    return color


def make_pillar_radar(
    averages: Sequence[PillarAverage],
    title: str | None = None,
    target_average: float | None = None,
) -> go.Figure:
    """
    One spoke per pillar with the subject's average (0-3) on it.

    When ``target_average`` is given a dashed ring marks the per-pillar
    target (total target / 8).
    """
    codes = [p.pillar_code for p in averages]
    scores = np.clip(np.array([p.average_score for p in averages], dtype=float), 0.0, MAX_PILLAR_SCORE)
    angles = np.linspace(0.0, 360.0, len(codes), endpoint=False)

    fig = go.Figure()
    if len(codes):
        fig.add_trace(
            go.Scatterpolar(
                r=np.append(scores, scores[0]),
                theta=np.append(angles, angles[0]),
                mode="lines",
                line=dict(color="#666666", width=1.5),
                fill="toself",
                fillcolor="rgba(0,0,0,0.08)",
                name="Average (0-3)",
                hoverinfo="skip",
            )
        )
        fig.add_trace(
            go.Scatterpolar(
                r=scores,
                theta=angles,
                mode="markers+text",
                marker=dict(size=10, color=[score_color(s) for s in scores]),
                text=[f"{s:.1f}" for s in scores],
                textposition="top center",
                name="Pillar average",
                customdata=np.stack([np.array(codes, dtype=object), scores], axis=1),
                hovertemplate="<b>%{customdata[0]}</b><br>Average: %{customdata[1]:.2f}<extra></extra>",
            )
        )

    if target_average is not None and len(codes):
        ring = np.full(len(codes) + 1, float(np.clip(target_average, 0.0, MAX_PILLAR_SCORE)))
        fig.add_trace(
            go.Scatterpolar(
                r=ring,
                theta=np.append(angles, angles[0]),
                mode="lines",
                line=dict(color="#3027D7", width=1, dash="dash"),
                name="Target",
                hoverinfo="skip",
            )
        )

    if title is None and len(codes):
        title = f"{codes[int(np.argmin(scores))]} is the lowest pillar"

    fig.update_layout(
        title=dict(text=title or "Pillar averages", x=0.5, xanchor="center"),
        showlegend=True,
        polar=dict(
            radialaxis=dict(range=[0, MAX_PILLAR_SCORE], tickvals=[0, 1, 2, 3]),
            angularaxis=dict(
                rotation=90,
                direction="clockwise",
                tickmode="array",
                tickvals=angles,
                ticktext=codes,
            ),
        ),
        template="plotly_white",
        height=520,
    )
    return fig


def make_trend_figure(series: TrendSeries, target_score24: float | None = None) -> go.Figure:
    """Total score over time for one subject, oldest first."""
    x = [s.timestamp_iso for s in series.snapshots]
    y = series.scores

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=x,
            y=y,
            mode="lines+markers",
            name="Total /24",
            text=[s.band for s in series.snapshots],
            hovertemplate="%{x}<br>%{y:.2f}/24 (%{text})<extra></extra>",
        )
    )
    if target_score24 is not None and x:
        fig.add_hline(y=target_score24, line_dash="dash", annotation_text="Target")

    fig.update_layout(
        title=dict(text=f"Score trend ({series.token})", x=0.5, xanchor="center"),
        yaxis=dict(range=[0, MAX_TOTAL_SCORE], title="Score /24"),
        xaxis=dict(title="Captured"),
        template="plotly_white",
        height=420,
    )
    return fig
