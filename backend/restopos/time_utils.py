from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional


TIME_RANGES = ("day", "week", "month", "7days", "30days", "all")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 string to a naive UTC datetime; blank input gives None.

    Offsets (including a trailing Z) are applied, naive input is taken as UTC.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with a trailing Z, seconds precision. Naive input is taken as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def _months_back(day: datetime, months: int) -> datetime:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def range_start(time_range: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Inclusive lower bound for a named reporting window.

    "day", "week" and "month" are anchored at midnight today; "7days" and
    "30days" are rolling windows ending now. "all" (or nothing) means no bound.
    """
    if time_range in (None, "", "all"):
        return None

    now = now or utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if time_range == "day":
        return today
    if time_range == "week":
        return today - timedelta(days=7)
    if time_range == "month":
        return _months_back(today, 1)
    if time_range == "7days":
        return now - timedelta(days=7)
    if time_range == "30days":
        return now - timedelta(days=30)

    raise ValueError(f"unknown time range: {time_range}")


def day_bounds(value: str) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day given as YYYY-MM-DD."""
    try:
        day = date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"invalid date: {value!r}")
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)
