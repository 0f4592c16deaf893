"""Scheduled recomputation of platform-wide aggregate facts."""

import logging
from datetime import datetime, timezone
from typing import Any

import psycopg

from ..aggregate_facts import compute_aggregate_facts
from ..config import reference_timezone_from_env
from ..registry import register
from ..store import (
    load_platform_cues,
    load_platform_practices,
    load_subject_creation_times,
    upsert_aggregate_fact,
)

logger = logging.getLogger(__name__)


@register("insights.refresh")
async def handle_insights_refresh(
    conn: psycopg.AsyncConnection[Any], payload: dict[str, Any]
) -> None:
    timezone_name = payload.get("reference_timezone") or reference_timezone_from_env()
    now = datetime.now(timezone.utc)

    practices = await load_platform_practices(conn)
    cues = await load_platform_cues(conn)
    subjects_created_at = await load_subject_creation_times(conn)

    facts = compute_aggregate_facts(
        practices, cues, subjects_created_at, now=now, timezone_name=timezone_name
    )
    for key, value in facts.items():
        await upsert_aggregate_fact(conn, key, value)

    logger.info(
        "Refreshed %d aggregate facts (practices=%d, cues=%d, dogs=%d)",
        len(facts),
        len(practices),
        len(cues),
        len(subjects_created_at),
    )
