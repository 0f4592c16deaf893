"""In-memory worker metrics.

Asyncio is single-threaded, so plain dicts are safe without locking.
"""

import time

_start_time = time.monotonic()

_metrics: dict = {
    "jobs_processed": 0,
    "jobs_failed": 0,
    "jobs_dead": 0,
    "reminders_sent": 0,
    "reminders_failed": 0,
    "celebrations_fired": {},
}


def record_job_completed() -> None:
    _metrics["jobs_processed"] += 1


def record_job_failed() -> None:
    _metrics["jobs_failed"] += 1


def record_job_dead() -> None:
    _metrics["jobs_dead"] += 1


def record_reminder_sweep(sent: int, failed: int) -> None:
    _metrics["reminders_sent"] += sent
    _metrics["reminders_failed"] += failed


def record_celebration_fired(milestone_key: str) -> None:
    fired = _metrics["celebrations_fired"]
    fired[milestone_key] = fired.get(milestone_key, 0) + 1


def get_metrics() -> dict:
    """Return a snapshot of current metrics."""
    return {
        "uptime_seconds": round(time.monotonic() - _start_time, 1),
        "jobs_processed": _metrics["jobs_processed"],
        "jobs_failed": _metrics["jobs_failed"],
        "jobs_dead": _metrics["jobs_dead"],
        "reminders_sent": _metrics["reminders_sent"],
        "reminders_failed": _metrics["reminders_failed"],
        "celebrations_fired": dict(_metrics["celebrations_fired"]),
    }
