"""Consecutive-day activity streaks.

A streak is anchored at today or yesterday: no activity *yet* today does not
break a streak that ran through yesterday. The backward walk is bounded to
STREAK_SCAN_DAYS calendar days.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from .utils import as_utc, local_date_for_timezone

STREAK_SCAN_DAYS = 365
NO_ACTIVITY_DAYS = 999

_DAY = timedelta(days=1)


def practiced_dates(timestamps: Iterable[datetime], timezone_name: str) -> set[date]:
    return {local_date_for_timezone(ts, timezone_name) for ts in timestamps}


def current_streak(dates: Iterable[date], today: date) -> int:
    days = set(dates)
    start_offset = 0 if today in days else 1

    streak = 0
    for offset in range(start_offset, STREAK_SCAN_DAYS):
        if today - timedelta(days=offset) in days:
            streak += 1
        else:
            break
    return streak


def compute_streak(
    timestamps: Iterable[datetime],
    now: datetime,
    timezone_name: str,
) -> int:
    """Current streak of the given event timestamps as of ``now``."""
    today = local_date_for_timezone(now, timezone_name)
    return current_streak(practiced_dates(timestamps, timezone_name), today)


def best_streak(current: int, previous_best: int | None) -> int:
    """Best-ever streak: a running maximum that never decreases."""
    return max(current, previous_best or 0, 0)


def days_since(last: datetime | None, now: datetime) -> int:
    """Whole elapsed days since ``last``; events in the future count as 0."""
    if last is None:
        return NO_ACTIVITY_DAYS
    delta = as_utc(now) - as_utc(last)
    return max(0, delta // _DAY)
