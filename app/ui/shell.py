from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Iterable, List, Optional

import streamlit as st

PRIMARY = "#2563eb"
SURFACE = "#f8fafc"
CARD = "#ffffff"
BORDER = "#e5e7eb"
TEXT = "#111827"
MUTED = "#6b7280"
SUCCESS = "#16a34a"
WARNING = "#d97706"
ERROR = "#dc2626"

CSS_TEMPLATE = """
<style>
.stApp { background: $SURFACE; color: $TEXT; font-family: 'Inter', 'Segoe UI', system-ui, sans-serif; }
section.main .block-container { padding: 1.2rem 2rem 2rem 2rem; max-width: 1400px; }

.app-card { background: $CARD; border: 1px solid $BORDER; border-radius: 14px; padding: 1rem 1.1rem; }
.app-kpi { background: $CARD; border: 1px solid $BORDER; border-radius: 12px; padding: 0.85rem 1rem; }
.app-kpi .label { color: $MUTED; font-size: 0.85rem; margin-bottom: 0.2rem; }
.app-kpi .value { font-size: 1.5rem; font-weight: 700; }

.app-badge { display: inline-flex; padding: 0.2rem 0.55rem; border-radius: 999px; font-size: 0.75rem; font-weight: 600; }
.app-badge.success { background: #dcfce7; color: #166534; }
.app-badge.info { background: #dbeafe; color: #1e40af; }
.app-badge.warning { background: #fef3c7; color: #92400e; }
.app-badge.danger { background: #fee2e2; color: #991b1b; }
.app-badge.muted { background: #f3f4f6; color: $MUTED; }

.app-alert { border-left: 4px solid $WARNING; background: #fffbeb; padding: 0.6rem 0.9rem; border-radius: 8px; margin-bottom: 0.5rem; }

.app-stepper { display: grid; grid-template-columns: repeat(auto-fit, minmax(150px, 1fr)); gap: 0.5rem; margin-bottom: 1rem; }
.app-step { border: 1px solid $BORDER; background: $CARD; border-radius: 10px; padding: 0.6rem 0.8rem; }
.app-step .title { font-weight: 600; }
.app-step .status { color: $MUTED; font-size: 0.82rem; }
.app-step.active { border-color: $PRIMARY; }
.app-step.done { border-color: $SUCCESS; }
.app-step.error { border-color: $ERROR; }

.small-muted { color: $MUTED; font-size: 0.9rem; }
.section-header { font-weight: 700; font-size: 1.05rem; margin-bottom: 0.35rem; }
</style>
"""

GLOBAL_CSS = string.Template(CSS_TEMPLATE).safe_substitute(
    {
        "PRIMARY": PRIMARY,
        "SURFACE": SURFACE,
        "CARD": CARD,
        "BORDER": BORDER,
        "TEXT": TEXT,
        "MUTED": MUTED,
        "SUCCESS": SUCCESS,
        "WARNING": WARNING,
        "ERROR": ERROR,
    }
)

STATUS_BADGES = {
    "completed": ("Completed", "success"),
    "in_progress": ("In Progress", "info"),
    "not_started": ("No Evaluation", "muted"),
}


@dataclass
class Step:
    title: str
    description: str
    status: str  # waiting | active | done | error


def muted(text: str):
    st.markdown(f"<div class='small-muted'>{text}</div>", unsafe_allow_html=True)


def badge(label: str, tone: str = "info"):
    st.markdown(f"<span class='app-badge {tone}'>{label}</span>", unsafe_allow_html=True)


def status_badge(status: Optional[str]):
    label, tone = STATUS_BADGES.get(status or "not_started", (str(status).replace("_", " ").title(), "muted"))
    badge(label, tone)


def alert(message: str):
    st.markdown(f"<div class='app-alert'>{message}</div>", unsafe_allow_html=True)


def card(title: Optional[str] = None, description: Optional[str] = None):
    class _Card:
        def __enter__(self):
            st.markdown("<div class='app-card'>", unsafe_allow_html=True)
            if title:
                st.markdown(f"<div class='section-header'>{title}</div>", unsafe_allow_html=True)
            if description:
                muted(description)
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            st.markdown("</div>", unsafe_allow_html=True)
            return False

    return _Card()


def kpi_row(items: Iterable[dict]):
    items = list(items)
    cols = st.columns(len(items)) if items else []
    for col, item in zip(cols, items):
        with col:
            st.markdown(
                f"""
                <div class='app-kpi'>
                    <div class='label'>{item.get('label', '')}</div>
                    <div class='value'>{item.get('value', '-')}</div>
                    <div class='small-muted'>{item.get('hint', '')}</div>
                </div>
                """,
                unsafe_allow_html=True,
            )


def stepper(steps: List[Step]):
    indicators = {"waiting": "•", "active": "➜", "done": "✔", "error": "✖"}
    html = ["<div class='app-stepper'>"]
    for step in steps:
        html.append(
            f"<div class='app-step {step.status}'>"
            f"<div class='title'>{indicators.get(step.status, '•')} {step.title}</div>"
            f"<div class='status'>{step.description}</div></div>"
        )
    html.append("</div>")
    st.markdown("".join(html), unsafe_allow_html=True)


def section_header(title: str, description: Optional[str] = None):
    st.markdown(f"<div class='section-header'>{title}</div>", unsafe_allow_html=True)
    if description:
        muted(description)


class AppShell:
    def __init__(self, title: str, subtitle: Optional[str] = None):
        self.title = title
        self.subtitle = subtitle
        st.markdown(GLOBAL_CSS, unsafe_allow_html=True)

    def header(self, right: Optional[str] = None):
        left, right_col = st.columns([0.8, 0.2])
        with left:
            st.title(self.title)
            if self.subtitle:
                muted(self.subtitle)
        if right:
            with right_col:
                badge(right, "info")
