from pathlib import Path

import pandas as pd
import pytest

from casechat_analytics.io import load_dashboard_dir, read_csv, save_dashboard_dir
from io import StringIO


def _save_sample(raw_records, directory: Path, skip=()):
    tables = {name: pd.DataFrame(rows) for name, rows in raw_records.items() if name not in skip}
    return save_dashboard_dir(tables, directory)


def test_round_trip_through_directory(tmp_path: Path, raw_records, sample_data):
    written = _save_sample(raw_records, tmp_path)
    assert written["sections"] == tmp_path / "sections.csv"

    loaded = load_dashboard_dir(tmp_path)
    assert loaded.row_counts() == sample_data.row_counts()
    assert loaded.evaluations["created_at"].notna().all()
    assert set(loaded.memberships()["student_id"]) == {"s101", "s102", "s103", "s104", "s105", "s106"}


def test_optional_tables_may_be_missing(tmp_path: Path, raw_records):
    _save_sample(raw_records, tmp_path, skip=("case_chats", "student_sections", "section_cases"))
    loaded = load_dashboard_dir(tmp_path)
    assert loaded.case_chats.empty
    assert loaded.section_cases is None


def test_required_table_missing(tmp_path: Path, raw_records):
    _save_sample(raw_records, tmp_path, skip=("evaluations",))
    with pytest.raises(FileNotFoundError):
        load_dashboard_dir(tmp_path)


def test_save_rejects_unknown_tables(tmp_path: Path):
    with pytest.raises(ValueError):
        save_dashboard_dir({"grades": pd.DataFrame()}, tmp_path)


def test_read_csv_keeps_ids_as_text():
    frame = read_csv(StringIO("id,student_id,score\n001,007,12\n"))
    assert frame.loc[0, "id"] == "001"
    assert frame.loc[0, "student_id"] == "007"
    assert frame.loc[0, "score"] == 12
