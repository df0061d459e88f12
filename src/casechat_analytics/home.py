import math
from typing import Dict, List, Optional

import pandas as pd

from .filters import as_utc, utc_now, window_start
from .metrics import mean_or_none
from .records import DashboardData

ACTIVE_CHAT_STATUSES = {"started", "in_progress"}
ABANDONED = "abandoned"
RECENT_COMPLETIONS = 5
MAX_ACTIVITY_ITEMS = 8

OVERVIEW_COLUMNS = [
    "section_id",
    "section_title",
    "year_term",
    "total_students",
    "completed_students",
    "in_progress_students",
    "active_chats",
    "avg_score",
]


def progress_percent(done: int, total: int) -> int:
    if not total:
        return 0
    return int(math.floor(done / total * 100 + 0.5))


def format_time_ago(ts, now=None) -> str:
    current = as_utc(now) if now is not None else utc_now()
    minutes = int((current - as_utc(ts)).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    return f"{days} day{'s' if days > 1 else ''} ago"


def section_overview(data: DashboardData) -> pd.DataFrame:
    """Per enabled section, newest term first: roster progress, live chats and average score."""

    memberships = data.memberships()
    students = data.students.drop_duplicates(subset="id").set_index("id")
    completed_ids = set(data.evaluations["student_id"].dropna())
    chats = data.case_chats
    active = chats[chats["status"].isin(ACTIVE_CHAT_STATUSES)]

    rows = []
    for _, section in data.sections[data.sections["enabled"]].iterrows():
        member_ids = set(memberships.loc[memberships["section_id"] == section["section_id"], "student_id"]) & set(students.index)
        finished = students.loc[list(member_ids), "finished_at"] if member_ids else pd.Series(dtype=object)
        in_progress = [sid for sid in member_ids if sid not in completed_ids and pd.isna(finished.get(sid))]
        section_evals = data.evaluations[data.evaluations["student_id"].isin(member_ids)]
        rows.append(
            {
                "section_id": section["section_id"],
                "section_title": section["section_title"],
                "year_term": section["year_term"],
                "total_students": len(member_ids),
                "completed_students": len(member_ids & completed_ids),
                "in_progress_students": len(in_progress),
                "active_chats": int((active["section_id"] == section["section_id"]).sum()),
                "avg_score": mean_or_none(section_evals["score"]),
            }
        )

    result = pd.DataFrame(rows, columns=OVERVIEW_COLUMNS)
    if not result.empty:
        result = result.sort_values(by="year_term", ascending=False, kind="stable").reset_index(drop=True)
    return result


def home_stats(overview: pd.DataFrame, data: DashboardData, now=None) -> Dict[str, int]:
    start = window_start("7d", now=now)
    created = pd.to_datetime(data.evaluations["created_at"], errors="coerce", utc=True)
    status = data.case_chats["status"]
    return {
        "active_sections": len(overview),
        "total_students": int(overview["total_students"].sum()) if not overview.empty else 0,
        "completed_this_week": int((created >= start).sum()),
        "active_chats": int(status.isin(ACTIVE_CHAT_STATUSES).sum()),
        "abandoned_chats": int((status == ABANDONED).sum()),
    }


def build_alerts(stats: Dict[str, int]) -> List[Dict[str, str]]:
    alerts = []
    abandoned = stats.get("abandoned_chats", 0)
    if abandoned > 0:
        alerts.append(
            {
                "id": "abandoned-chats",
                "type": "warning",
                "message": f"{abandoned} chat{'s' if abandoned > 1 else ''} abandoned",
                "action": "monitor",
                "action_label": "View",
            }
        )
    return alerts


def recent_activity(data: DashboardData, limit: int = RECENT_COMPLETIONS) -> List[Dict[str, object]]:
    """Newest completions with student, section and case names resolved."""

    evaluations = data.evaluations.dropna(subset=["created_at"])
    newest = evaluations.sort_values(by="created_at", ascending=False, kind="stable").head(limit)
    students = data.students.drop_duplicates(subset="id").set_index("id")
    section_titles = dict(zip(data.sections["section_id"], data.sections["section_title"]))
    case_titles = dict(zip(data.cases["case_id"], data.cases["case_title"]))

    items = []
    for _, evaluation in newest.iterrows():
        if evaluation["student_id"] not in students.index:
            continue
        student = students.loc[evaluation["student_id"]]
        items.append(
            {
                "id": f"eval-{evaluation['id']}",
                "type": "completion",
                "student_name": student["full_name"] or "Unknown Student",
                "section_title": section_titles.get(student["section_id"], "Unknown Section"),
                "case_title": case_titles.get(evaluation["case_id"], "Unknown Case"),
                "timestamp": evaluation["created_at"],
            }
        )
    return items[:MAX_ACTIVITY_ITEMS]


def build_home(data: Optional[DashboardData], now=None) -> Optional[Dict[str, object]]:
    if data is None:
        return None
    overview = section_overview(data)
    stats = home_stats(overview, data, now=now)
    return {
        "sections": overview,
        "stats": stats,
        "alerts": build_alerts(stats),
        "recent": recent_activity(data),
    }
