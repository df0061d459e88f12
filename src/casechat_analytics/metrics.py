from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .filters import count_between, filter_by_date_range, utc_now, as_utc
from .records import DashboardData, student_memberships

MAX_SCORE = 15
NO_DIFFICULTY = "—"

SECTION_ROLLUP_COLUMNS = [
    "section_id",
    "section_title",
    "year_term",
    "total_students",
    "completed_students",
    "completions",
    "avg_score",
    "avg_hints",
    "avg_helpful",
    "completion_rate",
]

CASE_ROLLUP_COLUMNS = [
    "case_id",
    "case_title",
    "attempts",
    "students",
    "avg_score",
    "avg_hints",
    "avg_helpful",
    "difficulty",
    "completion_rate",
]


def mean_or_none(values: pd.Series) -> Optional[float]:
    """Mean of the non-null values; None for an empty or all-null series."""

    numeric = pd.to_numeric(values, errors="coerce").dropna()
    if numeric.empty:
        return None
    return float(numeric.sum() / len(numeric))


def completion_rate(completed: int, total: int) -> float:
    if not total:
        return 0.0
    rate = completed / total * 100
    return float(min(max(rate, 0.0), 100.0))


def difficulty_tag(avg_score: Optional[float]) -> str:
    if avg_score is None or pd.isna(avg_score):
        return NO_DIFFICULTY
    if avg_score >= 12:
        return "Easy"
    if avg_score >= 9:
        return "Medium"
    return "Hard"


def trend_direction(delta: int) -> str:
    if delta > 0:
        return "up"
    if delta < 0:
        return "down"
    return "flat"


def _metric_averages(subset: pd.DataFrame) -> Dict[str, Optional[float]]:
    return {
        "avg_score": mean_or_none(subset["score"]),
        "avg_hints": mean_or_none(subset["hints"]),
        "avg_helpful": mean_or_none(subset["helpful"]),
    }


def week_over_week(evaluations: pd.DataFrame, now=None) -> Dict[str, object]:
    current = as_utc(now) if now is not None else utc_now()
    week = pd.Timedelta(days=7)
    this_week = count_between(evaluations, current - week, current)
    last_week = count_between(evaluations, current - 2 * week, current - week)
    delta = this_week - last_week
    return {
        "completions_this_week": this_week,
        "completions_last_week": last_week,
        "completion_delta": delta,
        "trend": trend_direction(delta),
    }


def overall_statistics(
    sections: pd.DataFrame,
    students: pd.DataFrame,
    evaluations: pd.DataFrame,
    all_evaluations: Optional[pd.DataFrame] = None,
    now=None,
) -> Dict[str, object]:
    student_ids = set(students["id"].dropna().astype(str))
    completed_ids = set(evaluations["student_id"].dropna().astype(str)) & student_ids
    total_students = len(student_ids)

    summary: Dict[str, object] = {
        "total_sections": int(sections["enabled"].sum()) if not sections.empty else 0,
        "total_students": total_students,
        "total_completions": len(evaluations),
        "completed_students": len(completed_ids),
        "completion_rate": completion_rate(len(completed_ids), total_students),
    }
    summary.update(_metric_averages(evaluations))
    summary.update(week_over_week(all_evaluations if all_evaluations is not None else evaluations, now=now))
    return summary


def section_rollup(
    sections: pd.DataFrame,
    students: pd.DataFrame,
    evaluations: pd.DataFrame,
    student_sections: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Per enabled section: student counts, completions, averages and completion rate.

    Sections with no students stay in the output with a 0% rate. Students that
    reference unknown sections simply never match a section.
    """

    memberships = student_memberships(students, student_sections)
    memberships = memberships[memberships["student_id"].isin(set(students["id"]))]
    enabled = sections[sections["enabled"]]

    rows = []
    for _, section in enabled.iterrows():
        member_ids = set(memberships.loc[memberships["section_id"] == section["section_id"], "student_id"].astype(str))
        subset = evaluations[evaluations["student_id"].astype(str).isin(member_ids)]
        completed = subset["student_id"].dropna().astype(str).nunique()
        total = len(member_ids)
        row = {
            "section_id": section["section_id"],
            "section_title": section["section_title"],
            "year_term": section["year_term"],
            "total_students": total,
            "completed_students": completed,
            "completions": len(subset),
            "completion_rate": completion_rate(completed, total),
        }
        row.update(_metric_averages(subset))
        rows.append(row)

    result = pd.DataFrame(rows, columns=SECTION_ROLLUP_COLUMNS)
    if not result.empty:
        result = result.sort_values(by="completion_rate", ascending=False, kind="stable").reset_index(drop=True)
    return result


def case_rollup(
    cases: pd.DataFrame,
    evaluations: pd.DataFrame,
    students: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Per enabled case with at least one attempt, most attempted first.

    ``completion_rate`` is the share of the student population (``students``)
    that has an evaluation for the case; 0 when no population is given.
    """

    population = len(set(students["id"].dropna().astype(str))) if students is not None else 0
    enabled = cases[cases["enabled"]]

    rows = []
    for _, case in enabled.iterrows():
        subset = evaluations[evaluations["case_id"] == case["case_id"]]
        if subset.empty:
            continue
        averages = _metric_averages(subset)
        unique_students = subset["student_id"].dropna().astype(str).nunique()
        row = {
            "case_id": case["case_id"],
            "case_title": case["case_title"],
            "attempts": len(subset),
            "students": unique_students,
            "difficulty": difficulty_tag(averages["avg_score"]),
            "completion_rate": completion_rate(unique_students, population),
        }
        row.update(averages)
        rows.append(row)

    result = pd.DataFrame(rows, columns=CASE_ROLLUP_COLUMNS)
    if not result.empty:
        result = result.sort_values(by="attempts", ascending=False, kind="stable").reset_index(drop=True)
    return result


def score_distribution(evaluations: pd.DataFrame) -> pd.DataFrame:
    """Histogram of scores over the fixed integer buckets 0..15, empty buckets included."""

    scores = pd.to_numeric(evaluations["score"], errors="coerce").dropna()
    # round half up; numpy's round is half-to-even
    buckets = np.clip(np.floor(scores.to_numpy(dtype=float) + 0.5), 0, MAX_SCORE).astype(int)
    counts = np.bincount(buckets, minlength=MAX_SCORE + 1)
    return pd.DataFrame({"score": np.arange(MAX_SCORE + 1), "count": counts[: MAX_SCORE + 1]})


@dataclass
class AnalyticsReport:
    date_range: str
    overall: Dict[str, object]
    sections: pd.DataFrame
    cases: pd.DataFrame
    distribution: pd.DataFrame
    evaluations: pd.DataFrame


def build_report(data: Optional[DashboardData], date_range: str = "all", now=None) -> Optional[AnalyticsReport]:
    """Filter evaluations to ``date_range`` and compute every rollup.

    Returns None when ``data`` is None (upstream fetch failed), which callers
    must show as "data unavailable" rather than as an empty class.
    """

    if data is None:
        return None

    current = as_utc(now) if now is not None else utc_now()
    filtered = filter_by_date_range(data.evaluations, date_range, now=current)

    return AnalyticsReport(
        date_range=date_range,
        overall=overall_statistics(data.sections, data.students, filtered, all_evaluations=data.evaluations, now=current),
        sections=section_rollup(data.sections, data.students, filtered, data.student_sections),
        cases=case_rollup(data.cases, filtered, data.students),
        distribution=score_distribution(filtered),
        evaluations=filtered,
    )
