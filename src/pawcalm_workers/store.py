"""Event store adapter.

All database access for the engagement engine lives here. Functions take an
open psycopg AsyncConnection; transaction scope is the caller's.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from .aggregate_facts import PLATFORM_PRACTICE_LIMIT
from .models import CueCounter, PracticeEvent, SessionEvent
from .patterns import RECENT_PRACTICE_LIMIT, RECENT_SESSION_LIMIT
from .records import (
    CueCounterRecord,
    PracticeRecord,
    SessionRecord,
    SubjectRecord,
    parse_rows,
)
from .streaks import STREAK_SCAN_DAYS

logger = logging.getLogger(__name__)

# One session per day over the whole streak scan, plus slack for same-day repeats.
REMINDER_SESSION_LIMIT = STREAK_SCAN_DAYS + 35


async def _fetch_all(
    conn: psycopg.AsyncConnection[Any], query: str, params: tuple[Any, ...] = ()
) -> list[dict[str, Any]]:
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(query, params)
        return await cur.fetchall()


async def _fetch_count(
    conn: psycopg.AsyncConnection[Any], query: str, params: tuple[Any, ...]
) -> int:
    async with conn.cursor() as cur:
        await cur.execute(query, params)
        row = await cur.fetchone()
    return int(row[0]) if row else 0


async def lock_subject(conn: psycopg.AsyncConnection[Any], dog_id: str) -> None:
    """Serialize engagement evaluations for one subject until the transaction ends."""
    await conn.execute(
        "SELECT pg_advisory_xact_lock(hashtext(%s)::bigint)",
        (f"engagement:{dog_id}",),
    )


async def load_recent_practices(
    conn: psycopg.AsyncConnection[Any],
    dog_id: str,
    limit: int = RECENT_PRACTICE_LIMIT,
) -> list[PracticeEvent]:
    rows = await _fetch_all(
        conn,
        """
        SELECT dog_id, created_at, cues, time_of_day
        FROM cue_practices
        WHERE dog_id = %s
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """,
        (dog_id, limit),
    )
    return [r.to_event() for r in parse_rows(PracticeRecord, rows)]


async def count_practices(conn: psycopg.AsyncConnection[Any], dog_id: str) -> int:
    return await _fetch_count(
        conn, "SELECT COUNT(*) FROM cue_practices WHERE dog_id = %s", (dog_id,)
    )


async def count_practices_since(
    conn: psycopg.AsyncConnection[Any], dog_id: str, since: datetime
) -> int:
    return await _fetch_count(
        conn,
        "SELECT COUNT(*) FROM cue_practices WHERE dog_id = %s AND created_at >= %s",
        (dog_id, since),
    )


async def count_practices_this_week(
    conn: psycopg.AsyncConnection[Any], dog_id: str, now: datetime
) -> int:
    return await count_practices_since(conn, dog_id, now - timedelta(days=7))


async def load_recent_sessions(
    conn: psycopg.AsyncConnection[Any],
    dog_id: str,
    limit: int = RECENT_SESSION_LIMIT,
) -> list[SessionEvent]:
    rows = await _fetch_all(
        conn,
        """
        SELECT dog_id, created_at, dog_response, owner_feeling, outcome
        FROM sessions
        WHERE dog_id = %s
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """,
        (dog_id, limit),
    )
    return [r.to_event() for r in parse_rows(SessionRecord, rows)]


async def count_sessions(conn: psycopg.AsyncConnection[Any], dog_id: str) -> int:
    return await _fetch_count(conn, "SELECT COUNT(*) FROM sessions WHERE dog_id = %s", (dog_id,))


async def has_great_session(conn: psycopg.AsyncConnection[Any], dog_id: str) -> bool:
    count = await _fetch_count(
        conn,
        "SELECT COUNT(*) FROM sessions WHERE dog_id = %s AND dog_response = 'great'",
        (dog_id,),
    )
    return count > 0


async def load_cue_counters(conn: psycopg.AsyncConnection[Any], dog_id: str) -> list[CueCounter]:
    rows = await _fetch_all(
        conn,
        """
        SELECT id, dog_id, name, calm_count, total_practices, mastered_at
        FROM custom_cues
        WHERE dog_id = %s
        ORDER BY created_at ASC, id ASC
        """,
        (dog_id,),
    )
    return [r.to_counter() for r in parse_rows(CueCounterRecord, rows)]


async def load_shown_milestones(conn: psycopg.AsyncConnection[Any], dog_id: str) -> frozenset[str]:
    """Milestone keys already delivered. Call under ``lock_subject``."""
    rows = await _fetch_all(
        conn,
        "SELECT milestone_key FROM shown_milestones WHERE dog_id = %s",
        (dog_id,),
    )
    return frozenset(str(r["milestone_key"]) for r in rows)


async def record_shown_milestones(
    conn: psycopg.AsyncConnection[Any], dog_id: str, keys: frozenset[str]
) -> None:
    """Insert the given keys; existing keys are left untouched."""
    if not keys:
        return
    async with conn.cursor() as cur:
        await cur.executemany(
            """
            INSERT INTO shown_milestones (dog_id, milestone_key, shown_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (dog_id, milestone_key) DO NOTHING
            """,
            [(dog_id, key) for key in sorted(keys)],
        )


async def load_previous_best_streak(conn: psycopg.AsyncConnection[Any], dog_id: str) -> int:
    return await _fetch_count(
        conn,
        "SELECT COALESCE(MAX(best_streak), 0) FROM engagement_snapshots WHERE dog_id = %s",
        (dog_id,),
    )


async def upsert_engagement_snapshot(
    conn: psycopg.AsyncConnection[Any],
    dog_id: str,
    data: dict[str, Any],
    best_streak: int,
) -> None:
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO engagement_snapshots (dog_id, data, best_streak, version, updated_at)
            VALUES (%s, %s, %s, 1, NOW())
            ON CONFLICT (dog_id) DO UPDATE SET
                data = EXCLUDED.data,
                best_streak = GREATEST(engagement_snapshots.best_streak, EXCLUDED.best_streak),
                version = engagement_snapshots.version + 1,
                updated_at = NOW()
            """,
            (dog_id, Json(data), best_streak),
        )


async def load_subject(conn: psycopg.AsyncConnection[Any], dog_id: str) -> SubjectRecord | None:
    rows = await _fetch_all(
        conn,
        "SELECT id, name, owner_phone, reminder_hour, created_at FROM dogs WHERE id = %s",
        (dog_id,),
    )
    parsed = parse_rows(SubjectRecord, rows)
    return parsed[0] if parsed else None


async def load_reminder_subjects(conn: psycopg.AsyncConnection[Any]) -> list[SubjectRecord]:
    rows = await _fetch_all(
        conn,
        """
        SELECT id, name, owner_phone, reminder_hour, created_at
        FROM dogs
        WHERE sms_enabled = TRUE
          AND owner_phone IS NOT NULL
        ORDER BY id
        """,
    )
    return parse_rows(SubjectRecord, rows)


async def load_sessions_for_reminders(
    conn: psycopg.AsyncConnection[Any], dog_id: str
) -> list[SessionEvent]:
    return await load_recent_sessions(conn, dog_id, limit=REMINDER_SESSION_LIMIT)


async def enqueue_outbound_message(
    conn: psycopg.AsyncConnection[Any],
    *,
    dog_id: str,
    recipient: str,
    template: str,
    values: dict[str, Any],
    channel: str = "sms",
    created_at: datetime | None = None,
) -> None:
    """Queue a message for the sender. ``created_at`` defaults to the transaction time."""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO outbound_messages
                (dog_id, channel, recipient, template, template_values, created_at)
            VALUES (%s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (dog_id, channel, recipient, template, Json(values), created_at),
        )


async def load_last_reminder_at(
    conn: psycopg.AsyncConnection[Any], dog_id: str, channel: str = "sms"
) -> datetime | None:
    rows = await _fetch_all(
        conn,
        """
        SELECT created_at
        FROM outbound_messages
        WHERE dog_id = %s AND channel = %s
        ORDER BY created_at DESC
        LIMIT 1
        """,
        (dog_id, channel),
    )
    return rows[0]["created_at"] if rows else None


async def load_aggregate_facts(conn: psycopg.AsyncConnection[Any]) -> dict[str, Any]:
    rows = await _fetch_all(conn, "SELECT insight_key, insight_value FROM aggregate_insights")
    return {str(r["insight_key"]): r["insight_value"] for r in rows}


async def upsert_aggregate_fact(
    conn: psycopg.AsyncConnection[Any], key: str, value: dict[str, Any]
) -> None:
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO aggregate_insights (insight_key, insight_value, calculated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (insight_key) DO UPDATE SET
                insight_value = EXCLUDED.insight_value,
                calculated_at = NOW()
            """,
            (key, Json(value)),
        )


async def load_platform_practices(
    conn: psycopg.AsyncConnection[Any], limit: int = PLATFORM_PRACTICE_LIMIT
) -> list[PracticeEvent]:
    rows = await _fetch_all(
        conn,
        """
        SELECT dog_id, created_at, cues, time_of_day
        FROM cue_practices
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """,
        (limit,),
    )
    return [r.to_event() for r in parse_rows(PracticeRecord, rows)]


async def load_platform_cues(conn: psycopg.AsyncConnection[Any]) -> list[CueCounter]:
    rows = await _fetch_all(
        conn,
        "SELECT id, dog_id, name, calm_count, total_practices, mastered_at FROM custom_cues",
    )
    return [r.to_counter() for r in parse_rows(CueCounterRecord, rows)]


async def load_subject_creation_times(conn: psycopg.AsyncConnection[Any]) -> dict[str, datetime]:
    rows = await _fetch_all(conn, "SELECT id, name, created_at FROM dogs")
    return {
        r.id: r.created_at
        for r in parse_rows(SubjectRecord, rows)
        if r.created_at is not None
    }
