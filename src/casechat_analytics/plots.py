from typing import Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

SCORE_BAND_COLORS = {
    "strong": "#16a34a",
    "solid": "#2563eb",
    "developing": "#d97706",
    "struggling": "#dc2626",
}


def score_band(score: Optional[float]) -> Optional[str]:
    if score is None or pd.isna(score):
        return None
    if score >= 12:
        return "strong"
    if score >= 9:
        return "solid"
    if score >= 6:
        return "developing"
    return "struggling"


def distribution_chart(dist_df: pd.DataFrame) -> go.Figure:
    if dist_df.empty or dist_df["count"].sum() == 0:
        return go.Figure()
    data = dist_df.assign(band=dist_df["score"].map(score_band))
    fig = px.bar(
        data,
        x="score",
        y="count",
        color="band",
        color_discrete_map=SCORE_BAND_COLORS,
        title="Score distribution",
        labels={"score": "Score (0-15)", "count": "Evaluations", "band": "Band"},
    )
    fig.update_layout(bargap=0.05, xaxis={"dtick": 1})
    return fig


def section_completion_bar(sections_df: pd.DataFrame) -> go.Figure:
    if sections_df.empty:
        return go.Figure()
    fig = px.bar(
        sections_df,
        x="section_title",
        y="completion_rate",
        hover_data=["total_students", "completed_students", "avg_score"],
        title="Completion rate by section",
    )
    fig.update_layout(xaxis_title="Section", yaxis_title="Completion rate (%)", yaxis_range=[0, 100])
    return fig


def case_score_bar(cases_df: pd.DataFrame) -> go.Figure:
    if cases_df.empty:
        return go.Figure()
    fig = px.bar(
        cases_df,
        x="case_title",
        y="avg_score",
        color="difficulty",
        hover_data=["attempts", "students"],
        title="Average score by case",
    )
    fig.update_layout(xaxis_title="Case", yaxis_title="Avg score", yaxis_range=[0, 15])
    return fig
