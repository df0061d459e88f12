from typing import Dict, List

import pandas as pd

from .metrics import MAX_SCORE

REQUIRED_COLUMNS = ["id", "student_id", "case_id", "score", "hints", "helpful", "created_at"]
MAX_HELPFUL = 5


def _blank(series: pd.Series) -> pd.Series:
    return series.isna() | (series.astype(str).str.strip() == "")


def check_required_columns(df: pd.DataFrame) -> Dict[str, bool]:
    return {col: col in df.columns for col in REQUIRED_COLUMNS}


def check_missing_identifiers(df: pd.DataFrame) -> int:
    return int((_blank(df["student_id"]) | _blank(df["case_id"])).sum())


def check_score_range(df: pd.DataFrame) -> int:
    score = pd.to_numeric(df["score"], errors="coerce")
    return int(((score < 0) | (score > MAX_SCORE)).sum())


def check_negative_hints(df: pd.DataFrame) -> int:
    hints = pd.to_numeric(df["hints"], errors="coerce")
    return int((hints < 0).sum())


def check_helpful_range(df: pd.DataFrame) -> int:
    helpful = pd.to_numeric(df["helpful"], errors="coerce")
    return int(((helpful < 0) | (helpful > MAX_HELPFUL)).sum())


def check_timestamps(df: pd.DataFrame) -> int:
    """Count non-blank ``created_at`` values that do not parse."""

    raw = df["created_at"]
    parsed = pd.to_datetime(raw, errors="coerce", utc=True, format="ISO8601")
    return int((parsed.isna() & ~_blank(raw)).sum())


def run_invariants(df: pd.DataFrame) -> List[Dict[str, object]]:
    results = []

    required = check_required_columns(df)
    missing_required = [col for col, present in required.items() if not present]
    results.append(
        {
            "name": "required_columns",
            "ok": len(missing_required) == 0,
            "detail": ", ".join(missing_required) if missing_required else "all present",
        }
    )
    if missing_required:
        return results

    checks = [
        ("missing_identifiers", check_missing_identifiers),
        ("score_range_violations", check_score_range),
        ("negative_hints", check_negative_hints),
        ("helpful_range_violations", check_helpful_range),
        ("unparseable_timestamps", check_timestamps),
    ]
    for name, check in checks:
        count = check(df)
        results.append({"name": name, "ok": count == 0, "detail": count})
    return results
