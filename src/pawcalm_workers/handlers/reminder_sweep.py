"""Scheduled reminder sweep over every subject with SMS reminders enabled.

Selected reminders are written to outbound_messages (template id + values);
a separate sender owns rendering and transport. Each subject's write runs in
its own savepoint so one failure does not roll back the others.

The sweep's clock is the run's ``scheduled_at`` stamp. Subjects outside their
reminder hour are dropped before any history is loaded; the outbox doubles
as the record of who has already been reminded today.
"""

import logging
from typing import Any

import psycopg

from ..config import reference_timezone_from_env
from ..metrics import record_reminder_sweep
from ..registry import register
from ..reminders import (
    ReminderMessage,
    ReminderSubject,
    in_reminder_window,
    run_reminder_sweep,
)
from ..scheduler import scheduled_at_from_payload
from ..store import (
    count_sessions,
    enqueue_outbound_message,
    load_last_reminder_at,
    load_reminder_subjects,
    load_sessions_for_reminders,
)

logger = logging.getLogger(__name__)


@register("reminders.sweep")
async def handle_reminder_sweep(
    conn: psycopg.AsyncConnection[Any], payload: dict[str, Any]
) -> None:
    timezone_name = payload.get("reference_timezone") or reference_timezone_from_env()
    now = scheduled_at_from_payload(payload)

    subjects: list[ReminderSubject] = []
    outside_window = 0
    for record in await load_reminder_subjects(conn):
        if not record.owner_phone:
            continue
        if not in_reminder_window(record.reminder_hour, now, timezone_name):
            outside_window += 1
            continue
        subjects.append(
            ReminderSubject(
                subject_id=record.id,
                name=record.name,
                recipient=record.owner_phone,
                reminder_hour=record.reminder_hour,
                sessions=tuple(await load_sessions_for_reminders(conn, record.id)),
                total_sessions=await count_sessions(conn, record.id),
                last_reminded_at=await load_last_reminder_at(conn, record.id),
            )
        )

    async def deliver(subject: ReminderSubject, message: ReminderMessage) -> None:
        async with conn.transaction():
            await enqueue_outbound_message(
                conn,
                dog_id=subject.subject_id,
                recipient=subject.recipient,
                template=message.template.value,
                values=message.values,
                created_at=now,
            )

    result = await run_reminder_sweep(
        subjects, now=now, timezone_name=timezone_name, deliver=deliver
    )
    record_reminder_sweep(result.sent, result.failed)
    logger.info(
        "Reminder sweep for %s skipped %d subject(s) outside their reminder hour",
        now.isoformat(),
        outside_window,
    )
    if result.failed:
        logger.warning(
            "Reminder sweep had %d failure(s): %s",
            result.failed,
            result.failed_subject_ids,
        )
