from casechat_analytics.timer import CRITICAL, EXPIRED, NORMAL, TIME_UP_LABEL, WARNING, timer_display


def test_no_time_limit():
    assert timer_display(None) is None
    assert timer_display({"has_time_limit": False}) is None
    assert timer_display({"has_time_limit": True, "time_limit_minutes": None}) is None


def test_not_started_shows_full_limit():
    display = timer_display({"has_time_limit": True, "time_limit_minutes": 30, "timer_started": False})
    assert display.label == "30:00"
    assert display.level == NORMAL
    assert display.remaining_seconds == 1800
    assert not display.started


def test_levels_while_running():
    running = {"has_time_limit": True, "time_limit_minutes": 30, "timer_started": True}
    assert timer_display({**running, "remaining_seconds": 905}).label == "15:05"
    assert timer_display({**running, "remaining_seconds": 905}).level == NORMAL
    assert timer_display({**running, "remaining_seconds": 300}).level == WARNING
    assert timer_display({**running, "remaining_seconds": 61}).level == WARNING
    assert timer_display({**running, "remaining_seconds": 60}).level == CRITICAL
    assert timer_display({**running, "remaining_seconds": 9}).label == "0:09"


def test_custom_warning_threshold():
    payload = {"has_time_limit": True, "time_limit_minutes": 30, "timer_started": True, "remaining_seconds": 500}
    assert timer_display(payload).level == NORMAL
    assert timer_display(payload, warning_minutes=10).level == WARNING


def test_expired():
    running = {"has_time_limit": True, "time_limit_minutes": 30, "timer_started": True}
    for payload in ({**running, "remaining_seconds": 0}, {**running, "remaining_seconds": 40, "expired": True}):
        display = timer_display(payload)
        assert display.label == TIME_UP_LABEL
        assert display.level == EXPIRED
        assert display.remaining_seconds == 0
