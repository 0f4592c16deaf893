"""Recurring scheduling for the reminder sweep and aggregate-fact refresh.

Each recurring job type keeps at most one job in flight. Runs are keyed to
the reference-timezone hour they were scheduled in: a new one is queued once
the current hour is ``interval_hours`` past the last run's hour. Keying on
the scheduling hour rather than the completion time keeps hourly sweeps from
drifting past an hour boundary and skipping it.

Handlers read the run's clock from the ``scheduled_at`` payload field, so a
sweep scheduled at 10:59:58 still evaluates the 10:00 reminder window.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
import os
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from .utils import as_utc, to_reference_time

logger = logging.getLogger(__name__)

REMINDER_SWEEP_JOB_TYPE = "reminders.sweep"
INSIGHTS_REFRESH_JOB_TYPE = "insights.refresh"


def _interval_hours_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return max(1, int(raw))
    except ValueError:
        return default


def reminder_sweep_interval_hours() -> int:
    return _interval_hours_from_env("PAWCALM_REMINDER_SWEEP_HOURS", 1)


def insights_refresh_interval_hours() -> int:
    return _interval_hours_from_env("PAWCALM_INSIGHTS_REFRESH_HOURS", 24)


def hour_bucket(ts: datetime, timezone_name: str = "UTC") -> datetime:
    """Start of the reference-timezone hour containing ``ts``, in UTC."""
    local = to_reference_time(ts, timezone_name)
    return local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)


def is_run_due(
    now: datetime,
    last_run_at: datetime | None,
    interval_hours: int,
    timezone_name: str = "UTC",
) -> bool:
    """True when nothing has run yet or ``now`` is ``interval_hours`` hours past the last run's hour."""
    if interval_hours <= 0:
        raise ValueError("interval_hours must be positive")
    if last_run_at is None:
        return True
    elapsed = hour_bucket(now, timezone_name) - hour_bucket(last_run_at, timezone_name)
    return elapsed >= timedelta(hours=interval_hours)


def scheduled_at_from_payload(payload: dict[str, Any]) -> datetime:
    """The run's clock: its ``scheduled_at`` stamp, or now when absent or unreadable."""
    raw = payload.get("scheduled_at")
    if isinstance(raw, str):
        try:
            return as_utc(datetime.fromisoformat(raw))
        except ValueError:
            logger.warning("Ignoring unreadable scheduled_at=%r", raw)
    return datetime.now(timezone.utc)


async def ensure_recurring_job(
    conn: psycopg.AsyncConnection[Any],
    job_type: str,
    interval_hours: int,
    *,
    payload: dict[str, Any] | None = None,
    timezone_name: str = "UTC",
) -> int | None:
    """Queue ``job_type`` if it is due and not already in flight. Returns the new job id."""
    now = datetime.now(timezone.utc)

    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(
            """
            SELECT id
            FROM background_jobs
            WHERE job_type = %s
              AND status IN ('pending', 'processing')
            ORDER BY scheduled_for ASC, id ASC
            LIMIT 1
            """,
            (job_type,),
        )
        if await cur.fetchone() is not None:
            return None

        # Dead runs count as runs; otherwise a failing job is re-queued on every poll.
        await cur.execute(
            """
            SELECT created_at
            FROM background_jobs
            WHERE job_type = %s
              AND status IN ('completed', 'dead')
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (job_type,),
        )
        last_run = await cur.fetchone()
        last_run_at = last_run["created_at"] if last_run else None
        if not is_run_due(now, last_run_at, interval_hours, timezone_name):
            return None

        job_payload = {
            **(payload or {}),
            "interval_hours": interval_hours,
            "scheduled_at": now.isoformat(),
        }
        await cur.execute(
            """
            INSERT INTO background_jobs
                (job_type, payload, scheduled_for, priority, max_retries, created_at)
            VALUES (%s, %s, NOW(), 50, 1, %s)
            RETURNING id
            """,
            (job_type, Json(job_payload), now),
        )
        row = await cur.fetchone()
        if row is None:
            return None
        job_id = int(row["id"])

    logger.info(
        "Scheduled %s (job_id=%d, interval_h=%d)",
        job_type,
        job_id,
        interval_hours,
        extra={"pawcalm_job_type": job_type},
    )
    return job_id


async def ensure_recurring_jobs(
    conn: psycopg.AsyncConnection[Any], reference_timezone: str
) -> None:
    payload = {"reference_timezone": reference_timezone}
    await ensure_recurring_job(
        conn,
        REMINDER_SWEEP_JOB_TYPE,
        reminder_sweep_interval_hours(),
        payload=payload,
        timezone_name=reference_timezone,
    )
    await ensure_recurring_job(
        conn,
        INSIGHTS_REFRESH_JOB_TYPE,
        insights_refresh_interval_hours(),
        payload=payload,
        timezone_name=reference_timezone,
    )
