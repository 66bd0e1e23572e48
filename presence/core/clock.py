"""
Civil-time helpers for a site running on a fixed UTC offset.

Instants are stored in UTC; everything policy-related (bands, the work day a
record belongs to) is evaluated in the site's local time.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware.

    SQLite hands back naive datetimes; everything we write is UTC, so a naive
    value is taken to be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_offset(tz_offset: str) -> timezone:
    """Turn ``"+05:30"`` / ``"-04:00"`` / ``"+05"`` into a fixed-offset tzinfo."""
    if not tz_offset or tz_offset[0] not in "+-":
        raise ValueError(f"Offset must start with '+' or '-': {tz_offset!r}")
    sign = 1 if tz_offset[0] == "+" else -1
    offset_parts = tz_offset[1:].split(":")
    offset_hours = int(offset_parts[0])
    offset_mins = int(offset_parts[1]) if len(offset_parts) > 1 else 0
    return timezone(timedelta(hours=sign * offset_hours, minutes=sign * offset_mins))


def parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def to_local(instant: datetime, tz: timezone) -> datetime:
    return ensure_utc(instant).astimezone(tz)


def local_day(instant: datetime, tz: timezone) -> date:
    """Calendar date of ``instant`` on the site's wall clock (local midnight)."""
    return to_local(instant, tz).date()


def local_day_bounds(day: date, tz: timezone) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of the local calendar day ``day``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), (start + timedelta(days=1)).astimezone(timezone.utc)


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def format_local(instant: datetime | None, tz: timezone) -> str | None:
    """Human-facing local time, e.g. ``19/10/2026, 09:50 AM``."""
    if instant is None:
        return None
    return to_local(instant, tz).strftime("%d/%m/%Y, %I:%M %p")
