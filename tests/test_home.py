import pandas as pd

from casechat_analytics.home import build_alerts, build_home, format_time_ago, progress_percent


def test_progress_percent_rounds_half_up():
    assert progress_percent(1, 3) == 33
    assert progress_percent(2, 3) == 67
    assert progress_percent(1, 8) == 13
    assert progress_percent(0, 0) == 0


def test_format_time_ago(now):
    assert format_time_ago(now - pd.Timedelta(seconds=30), now) == "just now"
    assert format_time_ago(now - pd.Timedelta(minutes=5), now) == "5 min ago"
    assert format_time_ago(now - pd.Timedelta(hours=1), now) == "1 hour ago"
    assert format_time_ago(now - pd.Timedelta(hours=3), now) == "3 hours ago"
    assert format_time_ago(now - pd.Timedelta(days=1, hours=2), now) == "1 day ago"
    assert format_time_ago(now - pd.Timedelta(days=4), now) == "4 days ago"


def test_build_home_sections(sample_data, now):
    home = build_home(sample_data, now=now)
    sections = home["sections"]
    assert sections["section_id"].tolist() == ["MGT401-F25", "MGT310-F25"]

    capstone, lab = sections.iloc[0], sections.iloc[1]
    assert (capstone["total_students"], capstone["completed_students"], capstone["in_progress_students"]) == (3, 3, 0)
    assert capstone["avg_score"] == 9.0
    assert (lab["total_students"], lab["completed_students"], lab["in_progress_students"]) == (3, 1, 2)
    assert lab["active_chats"] == 1
    assert pd.isna(lab["avg_score"])


def test_build_home_stats_and_alerts(sample_data, now):
    home = build_home(sample_data, now=now)
    assert home["stats"] == {
        "active_sections": 2,
        "total_students": 6,
        "completed_this_week": 2,
        "active_chats": 1,
        "abandoned_chats": 1,
    }
    assert [alert["message"] for alert in home["alerts"]] == ["1 chat abandoned"]


def test_build_alerts_pluralizes_and_skips_zero():
    assert build_alerts({"abandoned_chats": 0}) == []
    assert build_alerts({"abandoned_chats": 3})[0]["message"] == "3 chats abandoned"


def test_recent_activity_newest_first(sample_data, now):
    recent = build_home(sample_data, now=now)["recent"]
    assert len(recent) == 5
    first = recent[0]
    assert first["student_name"] == "Alex Kim"
    assert first["case_title"] == "Kodak's Digital Dilemma"
    assert first["section_title"] == "Strategy Capstone"
    assert recent[-1]["section_title"] == "Negotiation Lab"


def test_build_home_unavailable():
    assert build_home(None) is None
