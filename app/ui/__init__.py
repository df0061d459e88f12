from .helpers import download_results, format_number, score_tone, style_fig
from .shell import AppShell, Step, alert, badge, card, kpi_row, muted, section_header, status_badge, stepper

__all__ = [
    "AppShell",
    "Step",
    "alert",
    "badge",
    "card",
    "download_results",
    "format_number",
    "kpi_row",
    "muted",
    "score_tone",
    "section_header",
    "status_badge",
    "stepper",
    "style_fig",
]
