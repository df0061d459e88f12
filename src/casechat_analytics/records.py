import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

SECTION_COLUMNS = ["section_id", "section_title", "year_term", "enabled"]
STUDENT_COLUMNS = ["id", "full_name", "first_name", "last_name", "email", "section_id", "finished_at"]
STUDENT_SECTION_COLUMNS = ["student_id", "section_id"]
EVALUATION_COLUMNS = ["id", "student_id", "case_id", "score", "hints", "helpful", "created_at", "allow_rechat"]
CASE_COLUMNS = ["case_id", "case_title", "enabled"]
CASE_CHAT_COLUMNS = [
    "id",
    "student_id",
    "section_id",
    "case_id",
    "status",
    "persona",
    "initial_position",
    "final_position",
    "start_time",
    "end_time",
    "last_activity",
    "evaluation_id",
]
SECTION_CASE_COLUMNS = ["section_id", "case_id"]

Records = Union[pd.DataFrame, Iterable[Mapping[str, object]], None]


def to_frame(records: Records, columns: List[str]) -> pd.DataFrame:
    """Build a DataFrame from API records, guaranteeing the given columns exist."""

    if records is None:
        frame = pd.DataFrame(columns=columns)
    elif isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        frame = pd.DataFrame(list(records))

    for col in columns:
        if col not in frame.columns:
            frame[col] = None
    return frame


def clean_id(value: object) -> Optional[str]:
    if value is None or value is pd.NA:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # JSON ids that went through a float column come back as 12.0
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def clean_ids(series: pd.Series) -> pd.Series:
    return series.map(clean_id).astype(object)


def as_bool(series: pd.Series, default: bool) -> pd.Series:
    truthy = {"1", "true", "yes", "y", "t"}

    def convert(value):
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return default
        if isinstance(value, str):
            return value.strip().lower() in truthy
        return bool(value)

    return series.map(convert).astype(bool)


def as_timestamp(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, errors="coerce", utc=True, format="ISO8601")


def ensure_sections(records: Records) -> pd.DataFrame:
    data = to_frame(records, SECTION_COLUMNS)
    data["section_id"] = clean_ids(data["section_id"])
    data = data[data["section_id"].notna()].copy()
    data["section_title"] = data["section_title"].fillna(data["section_id"]).astype(str)
    data["year_term"] = data["year_term"].fillna("").astype(str)
    data["enabled"] = as_bool(data["enabled"], default=True)
    return data.reset_index(drop=True)


def ensure_students(records: Records) -> pd.DataFrame:
    data = to_frame(records, STUDENT_COLUMNS)
    data["id"] = clean_ids(data["id"])
    data = data[data["id"].notna()].copy()
    data["section_id"] = clean_ids(data["section_id"])

    first = data["first_name"].fillna("").astype(str).str.strip()
    last = data["last_name"].fillna("").astype(str).str.strip()
    joined = (first + " " + last).str.strip()
    full = data["full_name"].fillna("").astype(str).str.strip()
    data["full_name"] = full.where(full != "", joined)
    data["finished_at"] = as_timestamp(data["finished_at"])
    return data.reset_index(drop=True)


def ensure_student_sections(records: Records) -> pd.DataFrame:
    data = to_frame(records, STUDENT_SECTION_COLUMNS)
    data["student_id"] = clean_ids(data["student_id"])
    data["section_id"] = clean_ids(data["section_id"])
    data = data.dropna(subset=["student_id", "section_id"])
    return data[STUDENT_SECTION_COLUMNS].reset_index(drop=True)


def ensure_evaluations(records: Records) -> pd.DataFrame:
    data = to_frame(records, EVALUATION_COLUMNS)
    data["id"] = clean_ids(data["id"])
    data["student_id"] = clean_ids(data["student_id"])
    data["case_id"] = clean_ids(data["case_id"])
    for col in ["score", "hints", "helpful"]:
        data[col] = pd.to_numeric(data[col], errors="coerce").astype(float)
    data["created_at"] = as_timestamp(data["created_at"])
    data["allow_rechat"] = as_bool(data["allow_rechat"], default=False)
    return data.reset_index(drop=True)


def ensure_cases(records: Records) -> pd.DataFrame:
    data = to_frame(records, CASE_COLUMNS)
    data["case_id"] = clean_ids(data["case_id"])
    data = data[data["case_id"].notna()].copy()
    data["case_title"] = data["case_title"].fillna(data["case_id"]).astype(str)
    data["enabled"] = as_bool(data["enabled"], default=True)
    return data.reset_index(drop=True)


def ensure_case_chats(records: Records) -> pd.DataFrame:
    data = to_frame(records, CASE_CHAT_COLUMNS)
    for col in ["id", "student_id", "section_id", "case_id", "evaluation_id"]:
        data[col] = clean_ids(data[col])
    for col in ["start_time", "end_time", "last_activity"]:
        data[col] = as_timestamp(data[col])
    return data.reset_index(drop=True)


def ensure_section_cases(records: Records) -> pd.DataFrame:
    data = to_frame(records, SECTION_CASE_COLUMNS)
    data["section_id"] = clean_ids(data["section_id"])
    data["case_id"] = clean_ids(data["case_id"])
    data = data.dropna(subset=["section_id", "case_id"])
    return data[SECTION_CASE_COLUMNS].drop_duplicates().reset_index(drop=True)


def student_memberships(students: pd.DataFrame, student_sections: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Union of the direct ``students.section_id`` link and the join table."""

    direct = students.loc[students["section_id"].notna(), ["id", "section_id"]].rename(columns={"id": "student_id"})
    frames = [direct]
    if student_sections is not None and not student_sections.empty:
        frames.append(student_sections[STUDENT_SECTION_COLUMNS])
    memberships = pd.concat(frames, ignore_index=True)
    return memberships.drop_duplicates().reset_index(drop=True)


@dataclass
class DashboardData:
    """Normalized reference data for one analytics query."""

    sections: pd.DataFrame
    students: pd.DataFrame
    evaluations: pd.DataFrame
    cases: pd.DataFrame
    case_chats: pd.DataFrame
    student_sections: Optional[pd.DataFrame] = None
    section_cases: Optional[pd.DataFrame] = None

    @classmethod
    def from_records(
        cls,
        sections: Records = None,
        students: Records = None,
        evaluations: Records = None,
        cases: Records = None,
        case_chats: Records = None,
        student_sections: Records = None,
        section_cases: Records = None,
    ) -> "DashboardData":
        return cls(
            sections=ensure_sections(sections),
            students=ensure_students(students),
            evaluations=ensure_evaluations(evaluations),
            cases=ensure_cases(cases),
            case_chats=ensure_case_chats(case_chats),
            student_sections=ensure_student_sections(student_sections) if student_sections is not None else None,
            section_cases=ensure_section_cases(section_cases) if section_cases is not None else None,
        )

    def memberships(self) -> pd.DataFrame:
        return student_memberships(self.students, self.student_sections)

    def row_counts(self) -> Dict[str, int]:
        return {
            "sections": len(self.sections),
            "students": len(self.students),
            "evaluations": len(self.evaluations),
            "cases": len(self.cases),
            "case_chats": len(self.case_chats),
        }
