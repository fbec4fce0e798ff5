"""
Date-Range Resolver
Turns caller supplied `from` / `to` strings into an ordered, inclusive window.
It never fails: missing, unparseable or inverted input falls back to a
window of DEFAULT_WINDOW_DAYS ending at `to` (or now).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from tasktime.config import DEFAULT_WINDOW_DAYS
from tasktime.models import utcnow

DateInput = Union[str, date, datetime, None]


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment <= self.end

    def to_dict(self) -> dict:
        return {"from": self.start, "to": self.end}


def parse_datetime(value: DateInput) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime. Naive values are read as UTC.
    Returns None for anything that can't be parsed.

    Example:
        parse_datetime("2024-01-15") -> 2024-01-15 00:00:00+00:00
        parse_datetime("2024-01-15T10:30:00Z") -> 2024-01-15 10:30:00+00:00
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _window_before(end: datetime, window: timedelta) -> datetime:
    try:
        return end - window
    except OverflowError:
        # `end` sits within the window of the earliest representable instant
        return datetime.min.replace(tzinfo=timezone.utc)


def resolve_date_range(
    from_: DateInput = None,
    to: DateInput = None,
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> DateRange:
    now = now or utcnow()
    window = timedelta(days=window_days)

    end = parse_datetime(to) or now
    start = parse_datetime(from_) or _window_before(end, window)

    # inverted input: keep the end, rebuild the default window before it
    if start > end:
        start = _window_before(end, window)

    return DateRange(start=start, end=end)
