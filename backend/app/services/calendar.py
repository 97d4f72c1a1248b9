"""
Weekday and date helpers shared by plan publishing and template generation.
Weekdays are numbered 0=Sunday .. 6=Saturday throughout (Python's date.weekday() is 0=Monday).
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings

DAY_NAMES: tuple[str, ...] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)
DAY_NAME_TO_NUMBER: dict[str, int] = {name: i for i, name in enumerate(DAY_NAMES)}


def weekday_of(d: date) -> int:
    """Day of week of d, 0=Sunday."""
    return (d.weekday() + 1) % 7


def day_name_to_number(name: str) -> int:
    """'Wednesday' -> 3. Accepts any case and 3-letter abbreviations. Raises ValueError on anything else."""
    key = (name or "").strip().lower()
    if key in DAY_NAME_TO_NUMBER:
        return DAY_NAME_TO_NUMBER[key]
    if len(key) >= 3:
        for full, number in DAY_NAME_TO_NUMBER.items():
            if full.startswith(key):
                return number
    raise ValueError(f"Unknown day of week: {name!r}")


def project_date(week_start: date, day_of_week: int) -> date:
    """Date within the anchor week that falls on day_of_week (0=Sunday), never before week_start."""
    offset = (day_of_week - weekday_of(week_start) + 7) % 7
    return week_start + timedelta(days=offset)


def iter_schedule_dates(
    start: date,
    end: date,
    weekdays: Iterable[int],
    end_date: date | None = None,
) -> Iterator[date]:
    """
    Yield every date in [start, end] whose weekday (0=Sunday) is in weekdays, walking one day at a time.
    end_date, if given, is an additional inclusive upper bound.
    """
    wanted = {int(d) for d in weekdays}
    last = min(end, end_date) if end_date is not None else end
    current = start
    while current <= last:
        if weekday_of(current) in wanted:
            yield current
        current += timedelta(days=1)


def parse_hhmm(value: str | None, default: str = "09:00") -> time:
    """'16:45' -> time(16, 45). Seconds are tolerated and dropped. Raises ValueError on malformed input."""
    raw = (value or default).strip()
    parts = raw.split(":")
    if len(parts) < 2:
        raise ValueError(f"Expected HH:MM, got {raw!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {raw!r}")
    return time(hours, minutes)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """User timezone, falling back to settings.default_timezone for unset or unknown names."""
    for candidate in (name, settings.default_timezone, "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    raise RuntimeError("UTC timezone data is unavailable")


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    """Calendar date in tz at `now` (default: current instant)."""
    now = now or datetime.now(tz)
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(tz).date()


def local_datetime(d: date, t: time, tz: ZoneInfo) -> datetime:
    """
    Aware datetime for wall-clock t on date d in tz.
    A time skipped by a spring-forward gap lands on the instant after it (02:30 -> 03:30).
    """
    return datetime.combine(d, t, tzinfo=tz).astimezone(timezone.utc).astimezone(tz)


def add_elapsed_minutes(start: datetime, minutes: int) -> datetime:
    """start plus minutes of real time, expressed in start's timezone."""
    if start.tzinfo is None:
        return start + timedelta(minutes=minutes)
    return (start.astimezone(timezone.utc) + timedelta(minutes=minutes)).astimezone(start.tzinfo)
