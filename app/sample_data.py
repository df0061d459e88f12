from typing import Dict, List, Optional

import pandas as pd

from casechat_analytics.filters import as_utc, utc_now
from casechat_analytics.records import DashboardData

SAMPLE_SECTIONS = [
    {"section_id": "MGT401-F25", "section_title": "Strategy Capstone", "year_term": "2025 Fall", "enabled": True},
    {"section_id": "MGT310-F25", "section_title": "Negotiation Lab", "year_term": "2025 Fall", "enabled": True},
    {"section_id": "MGT200-S25", "section_title": "Intro to Management", "year_term": "2025 Spring", "enabled": False},
]

SAMPLE_CASES = [
    {"case_id": "kodak", "case_title": "Kodak's Digital Dilemma", "enabled": True},
    {"case_id": "netflix", "case_title": "Netflix Goes Global", "enabled": True},
    {"case_id": "tesla", "case_title": "Tesla Supply Chain", "enabled": True},
]

SAMPLE_STUDENTS = [
    {"id": "s101", "first_name": "Alex", "last_name": "Kim", "section_id": "MGT401-F25"},
    {"id": "s102", "first_name": "Riley", "last_name": "Chen", "section_id": "MGT401-F25"},
    {"id": "s103", "first_name": "Jordan", "last_name": "Patel", "section_id": "MGT401-F25"},
    {"id": "s104", "first_name": "Sam", "last_name": "Okafor", "section_id": "MGT310-F25"},
    {"id": "s105", "first_name": "Taylor", "last_name": "Nguyen", "section_id": "MGT310-F25"},
    {"id": "s106", "first_name": "Casey", "last_name": "Moreau", "section_id": None},
]

# Casey is enrolled only through the join table
SAMPLE_STUDENT_SECTIONS = [
    {"student_id": "s106", "section_id": "MGT310-F25"},
]

SAMPLE_SECTION_CASES = [
    {"section_id": "MGT401-F25", "case_id": "kodak"},
    {"section_id": "MGT401-F25", "case_id": "netflix"},
    {"section_id": "MGT310-F25", "case_id": "tesla"},
]

# (evaluation id, student, case, score, hints, helpful, days ago)
_EVALUATIONS = [
    ("e1", "s101", "kodak", 15, 0, 5.0, 1),
    ("e2", "s102", "kodak", 9, 2, 4.0, 3),
    ("e3", "s103", "kodak", 9, 1, 3.5, 10),
    ("e4", "s101", "netflix", 3, 4, 2.0, 12),
    ("e5", "s104", "tesla", None, None, None, 40),
]

# (chat id, student, section, case, status, persona, initial, final, evaluation id, days ago)
_CHATS = [
    ("c1", "s101", "MGT401-F25", "kodak", "completed", "CEO", "for", "for", "e1", 1),
    ("c2", "s102", "MGT401-F25", "kodak", "completed", "CFO", "against", "for", "e2", 3),
    ("c3", "s103", "MGT401-F25", "kodak", "completed", "CEO", "for", "against", "e3", 10),
    ("c4", "s101", "MGT401-F25", "netflix", "completed", "Board", "against", "against", "e4", 12),
    ("c5", "s104", "MGT310-F25", "tesla", "completed", "COO", "for", "for", "e5", 40),
    ("c6", "s105", "MGT310-F25", "tesla", "in_progress", "COO", "against", None, None, 0),
    ("c7", "s102", "MGT401-F25", "netflix", "abandoned", "CEO", "for", None, None, 6),
]


def sample_records(now=None) -> Dict[str, List[Dict[str, object]]]:
    """Raw API-shaped records for a small class; timestamps are relative to ``now``."""

    current = as_utc(now) if now is not None else utc_now()

    def ago(days: int, minutes: int = 0) -> str:
        return (current - pd.Timedelta(days=days, minutes=minutes)).isoformat()

    evaluations = [
        {
            "id": eval_id,
            "student_id": student,
            "case_id": case,
            "score": score,
            "hints": hints,
            "helpful": helpful,
            "created_at": ago(days),
            "allow_rechat": False,
        }
        for eval_id, student, case, score, hints, helpful, days in _EVALUATIONS
    ]
    chats = [
        {
            "id": chat_id,
            "student_id": student,
            "section_id": section,
            "case_id": case,
            "status": status,
            "persona": persona,
            "initial_position": initial,
            "final_position": final,
            "start_time": ago(days, minutes=35),
            "end_time": ago(days) if status == "completed" else None,
            "last_activity": ago(days),
            "evaluation_id": eval_id,
        }
        for chat_id, student, section, case, status, persona, initial, final, eval_id, days in _CHATS
    ]
    return {
        "sections": [dict(row) for row in SAMPLE_SECTIONS],
        "students": [dict(row) for row in SAMPLE_STUDENTS],
        "evaluations": evaluations,
        "cases": [dict(row) for row in SAMPLE_CASES],
        "case_chats": chats,
        "student_sections": [dict(row) for row in SAMPLE_STUDENT_SECTIONS],
        "section_cases": [dict(row) for row in SAMPLE_SECTION_CASES],
    }


def load_sample_data(now: Optional[pd.Timestamp] = None) -> DashboardData:
    return DashboardData.from_records(**sample_records(now))
