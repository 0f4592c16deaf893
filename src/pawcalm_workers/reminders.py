"""Daily reminder selection and the batch sweep that drives it.

The policy returns a template id plus interpolation values; rendering and
transport belong to whoever consumes the outbound message.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from .models import DOG_RESPONSE_STRUGGLED, SessionEvent
from .logging import log_context
from .streaks import compute_streak
from .utils import local_date_for_timezone, local_hour_for_timezone

logger = logging.getLogger(__name__)

REMINDER_STREAK_THRESHOLD = 3


class ReminderTemplate(StrEnum):
    STREAK = "streak"
    FIRST_TIME = "first_time"
    ENCOURAGEMENT = "encouragement"
    DAILY_NUDGE = "daily_nudge"


@dataclass(frozen=True)
class ReminderMessage:
    template: ReminderTemplate
    values: dict[str, Any]


@dataclass(frozen=True)
class ReminderContext:
    subject_name: str
    streak: int
    session_today: bool
    total_sessions: int
    last_dog_response: str | None


@dataclass(frozen=True)
class ReminderSubject:
    """A subject with reminders enabled and its recent sessions, newest first."""

    subject_id: str
    name: str
    recipient: str
    reminder_hour: int | None = None
    sessions: tuple[SessionEvent, ...] = ()
    total_sessions: int | None = None
    last_reminded_at: datetime | None = None


@dataclass
class SweepResult:
    considered: int = 0
    outside_window: int = 0
    already_reminded: int = 0
    suppressed: int = 0
    sent: int = 0
    failed: int = 0
    failed_subject_ids: list[str] = field(default_factory=list)


DeliverFn = Callable[[ReminderSubject, ReminderMessage], Awaitable[None]]


def select_reminder(context: ReminderContext) -> ReminderMessage | None:
    if context.session_today:
        return None
    if context.streak >= REMINDER_STREAK_THRESHOLD:
        return ReminderMessage(
            ReminderTemplate.STREAK,
            {"subject_name": context.subject_name, "streak": context.streak},
        )
    if context.total_sessions == 0:
        return ReminderMessage(ReminderTemplate.FIRST_TIME, {"subject_name": context.subject_name})
    if context.last_dog_response == DOG_RESPONSE_STRUGGLED:
        return ReminderMessage(ReminderTemplate.ENCOURAGEMENT, {"subject_name": context.subject_name})
    return ReminderMessage(ReminderTemplate.DAILY_NUDGE, {"subject_name": context.subject_name})


def build_reminder_context(
    subject: ReminderSubject,
    now: datetime,
    timezone_name: str,
) -> ReminderContext:
    sessions = subject.sessions
    latest = max(sessions, key=lambda s: s.occurred_at) if sessions else None
    today = local_date_for_timezone(now, timezone_name)
    session_today = (
        latest is not None
        and local_date_for_timezone(latest.occurred_at, timezone_name) == today
    )
    return ReminderContext(
        subject_name=subject.name,
        streak=compute_streak((s.occurred_at for s in sessions), now, timezone_name),
        session_today=session_today,
        total_sessions=len(sessions) if subject.total_sessions is None else subject.total_sessions,
        last_dog_response=latest.dog_response if latest is not None else None,
    )


def in_reminder_window(reminder_hour: int | None, now: datetime, timezone_name: str) -> bool:
    """True when ``now`` falls in the subject's configured reminder hour.

    Subjects without a configured hour are eligible on every sweep; the
    once-per-day limit comes from ``already_reminded_today``.
    """
    if reminder_hour is None:
        return True
    return local_hour_for_timezone(now, timezone_name) == reminder_hour


def already_reminded_today(
    last_reminded_at: datetime | None, now: datetime, timezone_name: str
) -> bool:
    """True when the last reminder went out on today's reference-timezone date."""
    if last_reminded_at is None:
        return False
    return local_date_for_timezone(last_reminded_at, timezone_name) == local_date_for_timezone(
        now, timezone_name
    )


async def run_reminder_sweep(
    subjects: Iterable[ReminderSubject],
    *,
    now: datetime,
    timezone_name: str,
    deliver: DeliverFn,
) -> SweepResult:
    """Select and deliver at most one reminder per eligible subject and day.

    A failure for one subject is logged and counted; the sweep carries on.
    Delivery is attempted once.
    """
    result = SweepResult()
    for subject in subjects:
        result.considered += 1
        with log_context(subject_id=subject.subject_id):
            try:
                if not in_reminder_window(subject.reminder_hour, now, timezone_name):
                    result.outside_window += 1
                    continue
                if already_reminded_today(subject.last_reminded_at, now, timezone_name):
                    result.already_reminded += 1
                    continue

                message = select_reminder(build_reminder_context(subject, now, timezone_name))
                if message is None:
                    result.suppressed += 1
                    continue

                await deliver(subject, message)
                result.sent += 1
            except Exception:
                logger.exception("Reminder failed for subject=%s", subject.subject_id)
                result.failed += 1
                result.failed_subject_ids.append(subject.subject_id)

    logger.info(
        "Reminder sweep done (considered=%d, sent=%d, suppressed=%d, "
        "already_reminded=%d, outside_window=%d, failed=%d)",
        result.considered,
        result.sent,
        result.suppressed,
        result.already_reminded,
        result.outside_window,
        result.failed,
    )
    return result
