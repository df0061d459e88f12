import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Union

import pandas as pd

from .filters import ALL, Selection, SelectionValue, apply_selection, normalize_selection, row_status
from .metrics import completion_rate, mean_or_none, score_distribution
from .records import DashboardData, Records, as_bool, as_timestamp, clean_ids, to_frame

RESULT_COLUMNS = [
    "student_id",
    "student_name",
    "section_id",
    "section_title",
    "case_id",
    "case_title",
    "status",
    "initial_position",
    "final_position",
    "persona",
    "score",
    "hints",
    "helpful",
    "time_minutes",
    "evaluation_id",
    "case_chat_id",
    "completion_time",
    "allow_rechat",
]

SORT_KEYS = [
    "student_name",
    "section_title",
    "case_title",
    "status",
    "initial_position",
    "final_position",
    "persona",
    "score",
    "hints",
    "helpful",
    "completion_time",
]
TEXT_SORT_KEYS = {"student_name", "section_title", "case_title", "status", "initial_position", "final_position", "persona"}
SORT_DIRECTIONS = ("asc", "desc")
DEFAULT_SORT_KEY = "completion_time"
DEFAULT_SORT_DIR = "desc"

PAGE_SIZES = [10, 20, 50, 100]
DEFAULT_PAGE_SIZE = 20
MAX_VISIBLE_PAGES = 5
GAP = "..."

PageItem = Union[int, str]


def _encode_selection(value: SelectionValue) -> str:
    ids = normalize_selection(value)
    return ALL if ids is None else ",".join(ids)


@dataclass
class ResultsQuery:
    section_ids: SelectionValue = ALL
    case_ids: SelectionValue = ALL
    statuses: SelectionValue = ALL
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    sort_by: str = DEFAULT_SORT_KEY
    sort_dir: str = DEFAULT_SORT_DIR

    def __post_init__(self):
        if self.sort_by not in SORT_KEYS:
            raise ValueError(f"Unknown sort key '{self.sort_by}'. Expected one of: {', '.join(SORT_KEYS)}")
        if self.sort_dir not in SORT_DIRECTIONS:
            raise ValueError(f"sort_dir must be 'asc' or 'desc', got '{self.sort_dir}'")
        if self.limit < 0 or self.offset < 0:
            raise ValueError("limit and offset must be non-negative")
        # validates the status values too
        self.selection()

    def selection(self) -> Selection:
        return Selection(section_ids=self.section_ids, case_ids=self.case_ids, statuses=self.statuses)

    def to_params(self) -> Dict[str, str]:
        return {
            "section_ids": _encode_selection(self.section_ids),
            "case_ids": _encode_selection(self.case_ids),
            "statuses": _encode_selection(self.statuses),
            "limit": str(self.limit),
            "offset": str(self.offset),
            "sort_by": self.sort_by,
            "sort_dir": self.sort_dir,
        }


def ensure_result_rows(records: Records) -> pd.DataFrame:
    data = to_frame(records, RESULT_COLUMNS)
    for col in ["student_id", "section_id", "case_id", "evaluation_id", "case_chat_id"]:
        data[col] = clean_ids(data[col])
    for col in ["score", "hints", "helpful", "time_minutes"]:
        data[col] = pd.to_numeric(data[col], errors="coerce").astype(float)
    data["status"] = row_status(data)
    data["completion_time"] = as_timestamp(data["completion_time"])
    data["allow_rechat"] = as_bool(data["allow_rechat"], default=False)
    return data[RESULT_COLUMNS].reset_index(drop=True)


@dataclass
class ResultsPage:
    summary: Dict[str, object]
    rows: pd.DataFrame
    total: int
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "ResultsPage":
        rows = ensure_result_rows(payload.get("students") or [])
        return cls(
            summary=dict(payload.get("summary") or {}),
            rows=rows,
            total=int(payload.get("total") or 0),
            limit=int(payload.get("limit") or DEFAULT_PAGE_SIZE),
            offset=int(payload.get("offset") or 0),
        )


def build_result_rows(data: DashboardData) -> pd.DataFrame:
    """One row per (student, enabled section, assigned case), with chat and evaluation joined in.

    Without a section/case assignment table every case is treated as assigned
    to every section.
    """

    memberships = data.memberships()
    members = memberships.merge(
        data.students[["id", "full_name"]].rename(columns={"id": "student_id", "full_name": "student_name"}),
        on="student_id",
    )
    sections = data.sections.loc[data.sections["enabled"], ["section_id", "section_title"]]
    rows = members.merge(sections, on="section_id")

    cases = data.cases[["case_id", "case_title"]]
    if data.section_cases is not None:
        assigned = data.section_cases.merge(cases, on="case_id")
        rows = rows.merge(assigned, on="section_id")
    else:
        rows = rows.merge(cases, how="cross")

    chats = data.case_chats[
        ["id", "student_id", "section_id", "case_id", "status", "persona", "initial_position", "final_position", "start_time", "end_time", "evaluation_id"]
    ].rename(columns={"id": "case_chat_id"})
    rows = rows.merge(chats, on=["student_id", "section_id", "case_id"], how="left")

    evaluations = data.evaluations.loc[data.evaluations["id"].notna(), ["id", "score", "hints", "helpful", "allow_rechat"]]
    evaluations = evaluations.rename(columns={"id": "evaluation_id"})
    evaluations["matched_evaluation"] = evaluations["evaluation_id"]
    rows = rows.merge(evaluations, on="evaluation_id", how="left")
    # a chat may point at an evaluation that no longer exists
    rows["evaluation_id"] = rows["matched_evaluation"]

    start = pd.to_datetime(rows["start_time"], utc=True)
    end = pd.to_datetime(rows["end_time"], utc=True)
    rows["time_minutes"] = ((end - start).dt.total_seconds() // 60).astype(float)
    rows["completion_time"] = end
    return ensure_result_rows(rows[RESULT_COLUMNS])


def _breakdown(rows: pd.DataFrame, key: str, title: str) -> List[Dict[str, object]]:
    items = []
    for (group_id, group_title), group in rows.groupby([key, title], sort=False):
        scored = group[group["evaluation_id"].notna()]
        item = {key: group_id, title: group_title}
        if key == "section_id":
            item["total_students"] = int(group["student_id"].nunique())
        item["completions"] = len(scored)
        item["avg_score"] = mean_or_none(scored["score"])
        items.append(item)
    return sorted(items, key=lambda item: str(item[title]).lower())


def summarize_rows(rows: pd.DataFrame, selection: Optional[Selection] = None) -> Dict[str, object]:
    """Summary block in the same shape as the results endpoint returns it."""

    completed = rows[rows["evaluation_id"].notna()]
    total_students = rows["student_id"].nunique()
    completed_students = completed["student_id"].nunique()
    distribution = score_distribution(completed)

    selection = selection or Selection()
    summary: Dict[str, object] = {
        "totalStudents": int(total_students),
        "completedStudents": int(completed_students),
        "totalCompletions": len(completed),
        "avgScore": mean_or_none(completed["score"]),
        "avgHints": mean_or_none(completed["hints"]),
        "avgHelpful": mean_or_none(completed["helpful"]),
        "completionRate": completion_rate(completed_students, total_students),
        "scoreDistribution": [
            {"score": int(score), "count": int(count)} for score, count in zip(distribution["score"], distribution["count"])
        ],
        "sectionBreakdown": None,
        "caseBreakdown": None,
    }
    if selection.sections is None or len(selection.sections) > 1:
        summary["sectionBreakdown"] = _breakdown(rows, "section_id", "section_title")
    if selection.cases is None or len(selection.cases) > 1:
        summary["caseBreakdown"] = _breakdown(rows, "case_id", "case_title")
    return summary


def sort_rows(rows: pd.DataFrame, sort_by: str = DEFAULT_SORT_KEY, sort_dir: str = DEFAULT_SORT_DIR) -> pd.DataFrame:
    """Stable sort on one of ``SORT_KEYS``; missing values always sort last."""

    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort_by}'")
    if sort_dir not in SORT_DIRECTIONS:
        raise ValueError(f"sort_dir must be 'asc' or 'desc', got '{sort_dir}'")

    key = None
    if sort_by in TEXT_SORT_KEYS:
        def key(series: pd.Series) -> pd.Series:
            return series.astype("string").str.lower()

    return rows.sort_values(
        by=sort_by,
        ascending=sort_dir == "asc",
        na_position="last",
        kind="stable",
        key=key,
    ).reset_index(drop=True)


def paginate(rows: pd.DataFrame, limit: int, offset: int = 0) -> pd.DataFrame:
    if limit < 0 or offset < 0:
        raise ValueError("limit and offset must be non-negative")
    return rows.iloc[offset : offset + limit].reset_index(drop=True)


def query_local(rows: pd.DataFrame, query: ResultsQuery) -> ResultsPage:
    """Answer a results query against rows built by ``build_result_rows``."""

    selection = query.selection()
    selected = apply_selection(rows, selection)
    ordered = sort_rows(selected, query.sort_by, query.sort_dir)
    return ResultsPage(
        summary=summarize_rows(selected, selection),
        rows=paginate(ordered, query.limit, query.offset),
        total=len(selected),
        limit=query.limit,
        offset=query.offset,
    )


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(max(total, 0) / page_size)


def page_numbers(current: int, pages: int) -> List[PageItem]:
    """Compact pager: at most five page numbers, with "..." marking skipped runs."""

    if pages <= MAX_VISIBLE_PAGES:
        return list(range(1, pages + 1))
    if current <= 3:
        return [1, 2, 3, 4, GAP, pages]
    if current >= pages - 2:
        return [1, GAP] + list(range(pages - 3, pages + 1))
    return [1, GAP, current - 1, current, current + 1, GAP, pages]
