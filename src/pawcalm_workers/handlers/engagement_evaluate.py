"""Per-subject engagement evaluation.

Recomputes the engagement snapshot from bounded recent history, fires at most
one celebration, and stores the result as the subject's engagement projection.

Evaluations for one subject are serialized with a transaction-scoped advisory
lock, so the shown-milestone read and write happen as one step.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import psycopg

from ..config import reference_timezone_from_env
from ..engagement import build_engagement_snapshot
from ..insights import select_daily_insight
from ..metrics import record_celebration_fired
from ..milestones import celebration_context, evaluate_celebration
from ..models import RESPONSE_CALM
from ..owner_support import select_support_message
from ..progress_milestones import (
    MilestoneProgress,
    check_progress_milestones,
    milestone_progress,
    next_milestones,
)
from ..registry import register
from ..store import (
    count_practices,
    count_practices_this_week,
    count_sessions,
    has_great_session,
    load_aggregate_facts,
    load_cue_counters,
    load_previous_best_streak,
    load_recent_practices,
    load_recent_sessions,
    load_sessions_for_reminders,
    load_shown_milestones,
    load_subject,
    lock_subject,
    record_shown_milestones,
    upsert_engagement_snapshot,
)

logger = logging.getLogger(__name__)

# Progress milestone ids share shown_milestones with celebration keys.
PROGRESS_KEY_PREFIX = "progress:"


@register("engagement.evaluate")
async def handle_engagement_evaluate(
    conn: psycopg.AsyncConnection[Any], payload: dict[str, Any]
) -> None:
    dog_id = str(payload["dog_id"])
    timezone_name = payload.get("reference_timezone") or reference_timezone_from_env()
    now = datetime.now(timezone.utc)

    await lock_subject(conn, dog_id)

    subject = await load_subject(conn, dog_id)
    if subject is None:
        logger.warning("Engagement evaluation skipped: unknown subject=%s", dog_id)
        return

    practices = await load_recent_practices(conn, dog_id)
    recent_sessions = await load_recent_sessions(conn, dog_id)
    cues = await load_cue_counters(conn, dog_id)

    total_practice_count = await count_practices(conn, dog_id)

    snapshot = build_engagement_snapshot(
        practices=practices,
        sessions=recent_sessions,
        cues=cues,
        total_practice_count=total_practice_count,
        practices_this_week=await count_practices_this_week(conn, dog_id, now),
        now=now,
        timezone_name=timezone_name,
        previous_best_streak=await load_previous_best_streak(conn, dog_id),
    )

    session_history = await load_sessions_for_reminders(conn, dog_id)
    context = celebration_context(
        session_history, now, timezone_name, total_sessions=await count_sessions(conn, dog_id)
    )
    # The loaded history is bounded; a great session may be older.
    if not context.has_great_session and await has_great_session(conn, dog_id):
        context = replace(context, has_great_session=True)
    shown = await load_shown_milestones(conn, dog_id)
    celebration = evaluate_celebration(context, shown)
    if celebration.fired is not None:
        await record_shown_milestones(conn, dog_id, celebration.shown - shown)
        record_celebration_fired(celebration.fired.value)
        logger.info(
            "Celebration %s fired for subject=%s",
            celebration.fired.value,
            dog_id,
            extra={"pawcalm_milestone": celebration.fired.value},
        )

    progress = MilestoneProgress(
        total_practices=total_practice_count,
        total_cues=snapshot.total_cues,
        cues_mastered=snapshot.cues_mastered,
        total_sessions=context.total_sessions,
        current_streak=snapshot.current_streak,
        longest_streak=snapshot.longest_streak,
        calm_responses=sum(
            response == RESPONSE_CALM for p in practices for response in p.responses
        ),
    )
    unlocked = {
        key.removeprefix(PROGRESS_KEY_PREFIX)
        for key in shown
        if key.startswith(PROGRESS_KEY_PREFIX)
    }
    newly_unlocked = check_progress_milestones(progress, unlocked)
    if newly_unlocked:
        await record_shown_milestones(
            conn, dog_id, frozenset(PROGRESS_KEY_PREFIX + m.id for m in newly_unlocked)
        )
        unlocked |= {m.id for m in newly_unlocked}

    support = select_support_message(snapshot, subject.name)
    insight = select_daily_insight(await load_aggregate_facts(conn), now, timezone_name)

    projection_data: dict[str, Any] = {
        "snapshot": snapshot.as_dict(),
        "celebrations": celebration.fired_keys,
        "support_message": (
            {
                "kind": support.kind,
                "template": support.template,
                "values": support.values,
                "action": support.action,
            }
            if support is not None
            else None
        ),
        "insight": insight,
        "milestones_unlocked": [m.id for m in newly_unlocked],
        "next_milestones": [
            {"id": m.id, "title": m.title, "progress": milestone_progress(m.id, progress)}
            for m in next_milestones(unlocked)
        ],
        "reference_timezone": timezone_name,
        "evaluated_at": now.isoformat(),
    }
    await upsert_engagement_snapshot(conn, dog_id, projection_data, snapshot.longest_streak)

    logger.info(
        "Updated engagement for subject=%s (streak=%d, best=%d, mastered=%d/%d, celebration=%s)",
        dog_id,
        snapshot.current_streak,
        snapshot.longest_streak,
        snapshot.cues_mastered,
        snapshot.total_cues,
        celebration.fired.value if celebration.fired else None,
    )
