"""Engagement snapshot assembly.

Combines streaks, mastery and pattern runs over already-fetched, bounded
slices of a subject's history. A subject with no history yields an all-zero
snapshot (days-since fields set to NO_ACTIVITY_DAYS).
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from .mastery import just_mastered_cue, mastered_cues
from .milestones import streak_milestone_hit
from .models import OUTCOME_SUCCESS, CueCounter, EngagementSnapshot, PracticeEvent, SessionEvent
from .patterns import (
    consecutive_anxious,
    consecutive_frustrated,
    recent_owner_feelings,
    recent_responses,
)
from .streaks import best_streak, compute_streak, days_since

logger = logging.getLogger(__name__)


def build_engagement_snapshot(
    *,
    practices: Sequence[PracticeEvent],
    sessions: Sequence[SessionEvent],
    cues: Sequence[CueCounter],
    total_practice_count: int,
    practices_this_week: int,
    now: datetime,
    timezone_name: str,
    previous_best_streak: int | None = None,
) -> EngagementSnapshot:
    practices = sorted(practices, key=lambda p: p.occurred_at, reverse=True)
    sessions = sorted(sessions, key=lambda s: s.occurred_at, reverse=True)

    responses = recent_responses(practices)
    feelings = recent_owner_feelings(sessions)

    streak = compute_streak((p.occurred_at for p in practices), now, timezone_name)
    mastered = mastered_cues(cues)
    just_mastered = just_mastered_cue(cues, now, timezone_name)
    successful_sessions = sum(1 for s in sessions if s.outcome == OUTCOME_SUCCESS)

    snapshot = EngagementSnapshot(
        days_since_last_practice=days_since(practices[0].occurred_at if practices else None, now),
        days_since_last_session=days_since(sessions[0].occurred_at if sessions else None, now),
        practices_this_week=max(practices_this_week, 0),
        recent_responses=tuple(responses),
        recent_owner_feelings=tuple(feelings),
        consecutive_anxious_responses=consecutive_anxious(responses),
        consecutive_frustrated_sessions=consecutive_frustrated(feelings),
        current_streak=streak,
        longest_streak=best_streak(streak, previous_best_streak),
        cues_mastered=len(mastered),
        total_cues=len(cues),
        first_practice=max(total_practice_count, 0) == 0,
        first_mastery=len(mastered) == 1 and just_mastered is not None,
        first_success=successful_sessions == 1,
        just_hit_streak_milestone=streak_milestone_hit(streak),
        just_mastered_cue_name=just_mastered.name if just_mastered is not None else None,
        mastered_cue_ids=tuple(c.cue_id for c in mastered),
    )
    logger.debug(
        "Built engagement snapshot (streak=%d, mastered=%d/%d)",
        snapshot.current_streak,
        snapshot.cues_mastered,
        snapshot.total_cues,
    )
    return snapshot
