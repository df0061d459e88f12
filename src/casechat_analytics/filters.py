from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

ALL = "all"

DATE_RANGES: Dict[str, Optional[pd.Timedelta]] = {
    "7d": pd.Timedelta(days=7),
    "30d": pd.Timedelta(days=30),
    "90d": pd.Timedelta(days=90),
    ALL: None,
}

DATE_RANGE_LABELS = {
    "7d": "Last 7 days",
    "30d": "Last 30 days",
    "90d": "Last 90 days",
    ALL: "All time",
}

STATUSES = ["completed", "in_progress", "not_started"]
NOT_STARTED = "not_started"

SelectionValue = Union[str, Sequence[str], None]


def utc_now() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC")


def as_utc(ts) -> pd.Timestamp:
    stamp = pd.Timestamp(ts)
    if stamp.tzinfo is None:
        return stamp.tz_localize("UTC")
    return stamp.tz_convert("UTC")


def window_start(date_range: str, now=None) -> Optional[pd.Timestamp]:
    """Lower bound of ``date_range`` relative to ``now``; None for all time."""

    if date_range not in DATE_RANGES:
        raise ValueError(f"Unknown date range '{date_range}'. Expected one of: {', '.join(DATE_RANGES)}")
    window = DATE_RANGES[date_range]
    if window is None:
        return None
    current = as_utc(now) if now is not None else utc_now()
    return current - window


def filter_by_date_range(
    evaluations: pd.DataFrame,
    date_range: str,
    now=None,
    column: str = "created_at",
) -> pd.DataFrame:
    start = window_start(date_range, now=now)
    if start is None:
        return evaluations

    stamps = pd.to_datetime(evaluations[column], errors="coerce", utc=True)
    return evaluations[stamps >= start]


def count_between(evaluations: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp, column: str = "created_at") -> int:
    """Count rows whose timestamp falls in ``[start, end)``."""

    stamps = pd.to_datetime(evaluations[column], errors="coerce", utc=True)
    return int(((stamps >= start) & (stamps < end)).sum())


def normalize_selection(value: SelectionValue) -> Optional[List[str]]:
    """Return the explicit id list, or None when the axis is unrestricted."""

    if value is None:
        return None
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    else:
        items = [str(part).strip() for part in value]
    items = [item for item in items if item]
    if not items or ALL in items:
        return None
    return items


@dataclass
class Selection:
    section_ids: SelectionValue = ALL
    case_ids: SelectionValue = ALL
    statuses: SelectionValue = ALL

    sections: Optional[List[str]] = field(default=None, init=False, repr=False)
    cases: Optional[List[str]] = field(default=None, init=False, repr=False)
    status_list: Optional[List[str]] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.sections = normalize_selection(self.section_ids)
        self.cases = normalize_selection(self.case_ids)
        self.status_list = normalize_selection(self.statuses)
        if self.status_list:
            unknown = [s for s in self.status_list if s not in STATUSES]
            if unknown:
                raise ValueError(f"Unknown status values: {', '.join(unknown)}")

    @property
    def is_unrestricted(self) -> bool:
        return self.sections is None and self.cases is None and self.status_list is None

    def describe(self, section_titles: Optional[Dict[str, str]] = None, case_titles: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Human readable scope used in view headings."""

        def text(ids: Optional[List[str]], titles: Optional[Dict[str, str]], noun: str) -> str:
            if ids is None:
                return f"all {noun}s"
            if len(ids) == 1:
                return (titles or {}).get(ids[0], ids[0])
            return f"{len(ids)} {noun}s"

        return {
            "sections": text(self.sections, section_titles, "section"),
            "cases": text(self.cases, case_titles, "case"),
        }


def row_status(rows: pd.DataFrame) -> pd.Series:
    if "status" not in rows.columns:
        return pd.Series(NOT_STARTED, index=rows.index)
    status = rows["status"].astype(object).where(rows["status"].notna(), NOT_STARTED)
    return status.astype(str).str.strip().replace({"": NOT_STARTED})


def apply_selection(rows: pd.DataFrame, selection: Selection) -> pd.DataFrame:
    """Narrow result rows by section, case and status; axes combine with AND."""

    mask = pd.Series(True, index=rows.index)
    if selection.sections is not None:
        mask &= rows["section_id"].astype(str).isin(selection.sections)
    if selection.cases is not None:
        mask &= rows["case_id"].astype(str).isin(selection.cases)
    if selection.status_list is not None:
        mask &= row_status(rows).isin(selection.status_list)
    return rows[mask]


def selection_options(values: Iterable[str]) -> List[str]:
    return [ALL] + sorted({str(v) for v in values if v is not None and str(v).strip()})
