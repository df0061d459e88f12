from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
import streamlit as st

from casechat_analytics.export import write_export
from casechat_analytics.plots import score_band
from casechat_analytics.security import export_filename, sanitize_filename

SCORE_TONES = {"strong": "success", "solid": "info", "developing": "warning", "struggling": "danger"}


def _key(prefix: str, name: str) -> str:
    return f"{prefix}:{sanitize_filename(name)}"


def download_results(
    label: str,
    rows: pd.DataFrame,
    visible_columns: Iterable[str],
    export_dir: Path,
    filename: Optional[str] = None,
    safe_mode: bool = False,
) -> None:
    """Write the visible result columns to ``export_dir`` and offer the file for download."""

    if safe_mode:
        st.caption("Downloads disabled in safe mode.")
        return
    if rows.empty:
        st.caption("Nothing to export for the current filters.")
        return

    path = write_export(rows, visible_columns, export_dir, filename=filename or export_filename())
    st.download_button(
        label=label,
        data=path.read_bytes(),
        file_name=path.name,
        mime="text/csv",
        key=_key("dl", path.name),
    )


def format_number(value, digits: int = 1, suffix: str = "") -> str:
    if value is None or pd.isna(value):
        return "-"
    return f"{value:.{digits}f}{suffix}"


def score_tone(score) -> str:
    return SCORE_TONES.get(score_band(score), "muted")


def style_fig(fig, title: Optional[str] = None):
    fig.update_layout(
        title=title or fig.layout.title.text,
        margin=dict(t=60, r=24, b=40, l=24),
        template="plotly_white",
        font=dict(family="Inter, sans-serif", size=12),
        hoverlabel=dict(font_size=12),
    )
    return fig
