import io
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from .filters import ALL
from .security import build_export_path, export_filename

logger = logging.getLogger(__name__)

STUDENT_LABEL = "Student"

COLUMN_LABELS: Dict[str, str] = {
    "section_title": "Section",
    "case_title": "Case",
    "status": "Status",
    "initial_position": "Initial Position",
    "final_position": "Final Position",
    "persona": "Persona",
    "score": "Score",
    "hints": "Hints",
    "helpful": "Helpful",
    "completion_time": "Time",
}
COLUMN_OPTIONS: List[str] = list(COLUMN_LABELS)
DEFAULT_COLUMNS: List[str] = ["section_title", "case_title", "status", "score"]

ONE_DECIMAL = {"score", "helpful"}
INTEGER = {"hints"}
TIMESTAMP = {"completion_time"}


def resolve_columns(selected: Optional[Iterable[str]]) -> List[str]:
    """Visible columns in display order; nothing selected (or "all") means every column."""

    chosen = [str(c) for c in (selected or [])]
    if not chosen or ALL in chosen:
        return list(COLUMN_OPTIONS)
    unknown = [c for c in chosen if c not in COLUMN_LABELS]
    if unknown:
        raise ValueError(f"Unknown columns: {', '.join(unknown)}")
    return [c for c in COLUMN_OPTIONS if c in chosen]


def format_cell(column: str, value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if column in ONE_DECIMAL:
        return f"{float(value):.1f}"
    if column in INTEGER:
        return str(int(round(float(value))))
    if column in TIMESTAMP:
        return pd.Timestamp(value).isoformat()
    return str(value)


def _column_values(rows: pd.DataFrame, column: str) -> List[str]:
    values = rows[column] if column in rows.columns else [None] * len(rows)
    return [format_cell(column, v) for v in values]


def rows_to_csv(rows: pd.DataFrame, visible_columns: Optional[Iterable[str]] = None) -> str:
    """CSV text: ``Student`` first, then the visible columns under their labels."""

    table = pd.DataFrame({STUDENT_LABEL: _column_values(rows, "student_name")})
    for column in resolve_columns(visible_columns):
        table[COLUMN_LABELS[column]] = _column_values(rows, column)
    return table.to_csv(index=False, lineterminator="\n")


def read_export(source: Union[str, Path, io.StringIO]) -> pd.DataFrame:
    """Parse an export back; blank cells stay as empty strings."""

    if isinstance(source, str) and "\n" in source:
        source = io.StringIO(source)
    return pd.read_csv(source, dtype=str, keep_default_na=False)


def write_export(
    rows: pd.DataFrame,
    visible_columns: Optional[Iterable[str]],
    base_dir: Path,
    filename: Optional[str] = None,
    day: Optional[date] = None,
) -> Path:
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)
    path = build_export_path(base_dir, filename or export_filename(day))
    path.write_text(rows_to_csv(rows, visible_columns), encoding="utf-8")
    logger.info("Exported %d rows to %s", len(rows), path)
    return path
