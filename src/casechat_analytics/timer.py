from dataclasses import dataclass
from typing import Any, Mapping, Optional

NORMAL = "normal"
WARNING = "warning"
CRITICAL = "critical"
EXPIRED = "expired"

CRITICAL_SECONDS = 60
TIME_UP_LABEL = "Time's up"


@dataclass(frozen=True)
class TimerDisplay:
    label: str
    level: str
    remaining_seconds: int
    started: bool


def timer_display(payload: Optional[Mapping[str, Any]], warning_minutes: float = 5) -> Optional[TimerDisplay]:
    """Countdown label and urgency level for a chat; None when the chat has no time limit."""

    if not payload or not payload.get("has_time_limit") or payload.get("time_limit_minutes") is None:
        return None

    limit_minutes = int(payload["time_limit_minutes"])
    started = bool(payload.get("timer_started"))

    if started:
        remaining = max(int(payload.get("remaining_seconds") or 0), 0)
        expired = bool(payload.get("expired")) or remaining == 0
    else:
        remaining = limit_minutes * 60
        expired = False

    if expired:
        return TimerDisplay(label=TIME_UP_LABEL, level=EXPIRED, remaining_seconds=0, started=started)

    if started:
        label = f"{remaining // 60}:{remaining % 60:02d}"
    else:
        label = f"{limit_minutes}:00"

    if remaining <= CRITICAL_SECONDS:
        level = CRITICAL
    elif remaining <= warning_minutes * 60:
        level = WARNING
    else:
        level = NORMAL
    return TimerDisplay(label=label, level=level, remaining_seconds=remaining, started=started)
