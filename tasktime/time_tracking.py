import math
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from tasktime.config import DISPLAY_TIMEZONE

DISPLAY_TZ = ZoneInfo(DISPLAY_TIMEZONE)


def to_display_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert an aware UTC datetime → display timezone datetime
    """
    return dt.astimezone(DISPLAY_TZ) if dt else None


def session_seconds(started_at: datetime, stopped_at: datetime) -> int:
    """
    Whole seconds between two instants (floored).
    Clock skew that puts the stop before the start counts as zero.
    """
    seconds = math.floor((stopped_at - started_at).total_seconds())
    return max(0, seconds)


def session_duration_minutes(seconds: int) -> int:
    """
    Minutes recorded on a work-log row: rounded half-up, never below 1.
    """
    return max(1, math.floor(seconds / 60 + 0.5))


def total_minutes_from_seconds(total_seconds: int) -> int:
    """
    Task-level minutes are always re-derived from the seconds total
    so the two accumulators cannot drift apart.
    """
    return int(total_seconds) // 60


def hours_decimal(minutes) -> float:
    return round(int(minutes or 0) / 60, 2)


def format_seconds_to_clock(seconds) -> str:
    safe = max(0, int(seconds or 0))
    hours = safe // 3600
    minutes = (safe % 3600) // 60
    secs = safe % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration_minutes(minutes) -> str:
    if not minutes:
        return "0 min"
    mins = int(minutes)
    return f"{mins // 60}h {mins % 60}m"
