from pathlib import Path

import pandas as pd
import pytest

from casechat_analytics import invariants
from casechat_analytics.io import load_dashboard_dir
from casechat_analytics.metrics import build_report
from tools.generate_synthetic import generate_synthetic_dataset

NOW = pd.Timestamp("2025-10-15T12:00:00Z")


def test_generate_synthetic_dataset_creates_expected_tables(tmp_path: Path):
    tables = generate_synthetic_dataset(tmp_path, n_sections=3, n_students=12, n_cases=2, seed=123, now=NOW)

    assert set(tables) == {"sections", "students", "cases", "section_cases", "case_chats", "evaluations"}
    for name in tables:
        assert (tmp_path / f"{name}.csv").exists()

    student_ids = set(tables["students"]["id"])
    assert len(student_ids) == 12
    assert all(s.startswith("Student_") for s in student_ids)
    assert len(tables["sections"]) == 3
    assert len(tables["section_cases"]) == 3 * 2

    evaluations = tables["evaluations"]
    assert evaluations["score"].dropna().between(0, 15).all()
    assert set(evaluations["student_id"]) <= student_ids
    assert all(res["ok"] for res in invariants.run_invariants(evaluations))


def test_generate_synthetic_dataset_is_reproducible():
    first = generate_synthetic_dataset(n_students=20, seed=7, now=NOW)
    second = generate_synthetic_dataset(n_students=20, seed=7, now=NOW)
    pd.testing.assert_frame_equal(first["evaluations"], second["evaluations"])


def test_synthetic_dir_feeds_the_dashboard(tmp_path: Path):
    generate_synthetic_dataset(tmp_path, n_students=30, seed=1, now=NOW)
    data = load_dashboard_dir(tmp_path)
    report = build_report(data, "all", now=NOW)
    assert report.overall["total_students"] == 30
    assert report.overall["total_completions"] == len(data.evaluations)
    assert len(report.sections) == 4


def test_generate_synthetic_dataset_validates_arguments():
    with pytest.raises(ValueError):
        generate_synthetic_dataset(n_students=0)
    with pytest.raises(ValueError):
        generate_synthetic_dataset(n_cases=99)
