"""Shared time helpers for PawCalm workers.

Every calendar-day decision in the engine goes through a single reference
timezone. Timestamps without tzinfo are read as UTC.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_REFERENCE_TIMEZONE = "UTC"


def normalize_timezone_name(value: object) -> str | None:
    """Normalize a timezone preference and verify it's a valid IANA name."""
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw.upper() == "UTC":
        return "UTC"
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    return raw


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_reference_time(ts: datetime, timezone_name: str) -> datetime:
    return as_utc(ts).astimezone(ZoneInfo(timezone_name))


def local_date_for_timezone(ts: datetime, timezone_name: str) -> date:
    """Project a timestamp onto its calendar date in the reference timezone."""
    return to_reference_time(ts, timezone_name).date()


def local_hour_for_timezone(ts: datetime, timezone_name: str) -> int:
    return to_reference_time(ts, timezone_name).hour
