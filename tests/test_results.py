import pandas as pd
import pytest

from casechat_analytics.records import DashboardData
from casechat_analytics.results import (
    GAP,
    RESULT_COLUMNS,
    ResultsPage,
    ResultsQuery,
    build_result_rows,
    page_numbers,
    paginate,
    query_local,
    sort_rows,
    summarize_rows,
    total_pages,
)
from casechat_analytics.filters import Selection


def test_build_result_rows_one_row_per_assignment(result_rows):
    assert list(result_rows.columns) == RESULT_COLUMNS
    # 3 students x 2 cases in the capstone, 3 students x 1 case in the lab
    assert len(result_rows) == 9
    assert result_rows["status"].value_counts().to_dict() == {
        "completed": 5,
        "not_started": 2,
        "in_progress": 1,
        "abandoned": 1,
    }


def test_build_result_rows_joins_chat_and_evaluation(result_rows):
    row = result_rows[(result_rows["student_id"] == "s101") & (result_rows["case_id"] == "kodak")].iloc[0]
    assert row["student_name"] == "Alex Kim"
    assert row["section_title"] == "Strategy Capstone"
    assert row["case_title"] == "Kodak's Digital Dilemma"
    assert row["score"] == 15.0
    assert row["evaluation_id"] == "e1"
    assert row["case_chat_id"] == "c1"
    assert row["time_minutes"] == 35.0
    assert row["persona"] == "CEO"

    untouched = result_rows[(result_rows["student_id"] == "s106")].iloc[0]
    assert untouched["status"] == "not_started"
    assert pd.isna(untouched["evaluation_id"])
    assert pd.isna(untouched["completion_time"])
    assert not untouched["allow_rechat"]


def test_build_result_rows_ignores_dangling_evaluation_reference():
    data = DashboardData.from_records(
        sections=[{"section_id": "S", "section_title": "S", "enabled": True}],
        students=[{"id": "u1", "full_name": "Una", "section_id": "S"}, {"id": "u2", "full_name": "Ude", "section_id": "S"}],
        evaluations=[],
        cases=[{"case_id": "k", "case_title": "Kodak"}],
        case_chats=[{"id": "c1", "student_id": "u1", "section_id": "S", "case_id": "k", "status": "completed", "evaluation_id": "gone"}],
    )
    rows = build_result_rows(data)
    assert len(rows) == 2
    assert rows["evaluation_id"].isna().all()


def test_build_result_rows_without_assignments_crosses_cases():
    data = DashboardData.from_records(
        sections=[{"section_id": "S", "section_title": "S", "enabled": True}],
        students=[{"id": "u1", "full_name": "Una", "section_id": "S"}],
        cases=[{"case_id": "k", "case_title": "Kodak"}, {"case_id": "n", "case_title": "Netflix"}],
    )
    rows = build_result_rows(data)
    assert sorted(rows["case_id"]) == ["k", "n"]


def test_summarize_rows_unfiltered(result_rows):
    summary = summarize_rows(result_rows)
    assert summary["totalStudents"] == 6
    assert summary["completedStudents"] == 4
    assert summary["totalCompletions"] == 5
    assert summary["avgScore"] == 9.0
    assert summary["completionRate"] == pytest.approx(66.667, rel=1e-3)
    counts = {item["score"]: item["count"] for item in summary["scoreDistribution"]}
    assert counts[15] == 1 and counts[9] == 2 and counts[3] == 1
    assert [item["section_title"] for item in summary["sectionBreakdown"]] == ["Negotiation Lab", "Strategy Capstone"]
    capstone = summary["sectionBreakdown"][1]
    assert capstone["total_students"] == 3
    assert capstone["completions"] == 4
    assert [item["case_id"] for item in summary["caseBreakdown"]] == ["kodak", "netflix", "tesla"]


def test_summarize_rows_hides_breakdown_for_single_selection(result_rows):
    selection = Selection(section_ids=["MGT310-F25"])
    summary = summarize_rows(result_rows[result_rows["section_id"] == "MGT310-F25"], selection)
    assert summary["sectionBreakdown"] is None
    assert summary["caseBreakdown"] is not None
    assert summary["avgScore"] is None
    assert summary["totalStudents"] == 3


def test_sort_rows_text_is_case_insensitive_and_nulls_last(result_rows):
    by_name = sort_rows(result_rows, "student_name", "asc")
    assert by_name["student_name"].iloc[0] == "Alex Kim"
    assert by_name["student_name"].iloc[-1] == "Taylor Nguyen"

    by_score = sort_rows(result_rows, "score", "asc")
    assert by_score["score"].iloc[0] == 3.0
    assert by_score["score"].iloc[:4].tolist() == [3.0, 9.0, 9.0, 15.0]
    assert by_score["score"].iloc[4:].isna().all()

    by_score_desc = sort_rows(result_rows, "score", "desc")
    assert by_score_desc["score"].iloc[0] == 15.0
    assert by_score_desc["score"].iloc[-1:].isna().all()


def test_sort_rows_rejects_unknown_key(result_rows):
    with pytest.raises(ValueError):
        sort_rows(result_rows, "email")


def test_query_local_defaults_to_newest_completion_first(result_rows):
    page = query_local(result_rows, ResultsQuery())
    assert page.total == 9
    assert page.rows.iloc[0]["evaluation_id"] == "e1"
    assert page.rows.iloc[4]["evaluation_id"] == "e5"


def test_query_local_filters_and_pages(result_rows):
    page = query_local(result_rows, ResultsQuery(statuses=["completed"], limit=2, offset=2, sort_by="score", sort_dir="desc"))
    assert page.total == 5
    assert len(page.rows) == 2
    assert page.rows["score"].tolist() == [9.0, 3.0]


def test_results_query_validation_and_params():
    with pytest.raises(ValueError):
        ResultsQuery(sort_by="email")
    with pytest.raises(ValueError):
        ResultsQuery(sort_dir="up")
    with pytest.raises(ValueError):
        ResultsQuery(statuses=["done"])
    with pytest.raises(ValueError):
        ResultsQuery(offset=-1)

    params = ResultsQuery(section_ids=["a", "b"], limit=50).to_params()
    assert params["section_ids"] == "a,b"
    assert params["case_ids"] == "all"
    assert params["limit"] == "50"
    assert params["sort_by"] == "completion_time"


def test_results_page_from_payload():
    page = ResultsPage.from_payload(
        {
            "summary": {"totalStudents": 1},
            "students": [{"student_id": 7, "student_name": "Una", "score": "12", "status": None}],
            "total": 1,
        }
    )
    assert page.total == 1
    assert page.summary["totalStudents"] == 1
    row = page.rows.iloc[0]
    assert row["student_id"] == "7"
    assert row["score"] == 12.0
    assert row["status"] == "not_started"


def test_paginate_and_total_pages(result_rows):
    assert len(paginate(result_rows, 4, 8)) == 1
    assert total_pages(9, 4) == 3
    assert total_pages(0, 20) == 0
    with pytest.raises(ValueError):
        total_pages(5, 0)


@pytest.mark.parametrize(
    "current,pages,expected",
    [
        (1, 3, [1, 2, 3]),
        (1, 10, [1, 2, 3, 4, GAP, 10]),
        (10, 10, [1, GAP, 7, 8, 9, 10]),
        (5, 10, [1, GAP, 4, 5, 6, GAP, 10]),
        (1, 0, []),
    ],
)
def test_page_numbers(current, pages, expected):
    assert page_numbers(current, pages) == expected
