"""Owner support messaging derived from an engagement snapshot.

First matching rule wins. Results carry a template id and interpolation
values only.
"""

from dataclasses import dataclass
from typing import Any, Literal

from .models import RESPONSE_ANXIOUS, RESPONSE_CALM, RESPONSE_SLIGHT_REACTION, EngagementSnapshot

SupportKind = Literal["celebration", "welcome_back", "tough_day", "encouragement", "tip"]

CELEBRATED_STREAKS: tuple[int, ...] = (3, 7, 14, 30)
LONG_ABSENCE_DAYS = 7
SHORT_ABSENCE_DAYS = 3
ANXIOUS_RUN_THRESHOLD = 3
FRUSTRATED_RUN_THRESHOLD = 2
ON_FIRE_MIN_STREAK = 3
ON_FIRE_MIN_WEEKLY_PRACTICES = 5
ABSENCE_READY_MIN_MASTERED = 3
ABSENCE_READY_MIN_DAYS_SINCE_SESSION = 5


@dataclass(frozen=True)
class SupportMessage:
    kind: SupportKind
    template: str
    values: dict[str, Any]
    action: str | None = None


def select_support_message(snapshot: EngagementSnapshot, subject_name: str) -> SupportMessage | None:
    s = snapshot
    name = {"subject_name": subject_name}

    if s.just_mastered_cue_name:
        return SupportMessage(
            "celebration", "cue_mastered", {**name, "cue_name": s.just_mastered_cue_name}, "progress"
        )
    if s.just_hit_streak_milestone in CELEBRATED_STREAKS:
        return SupportMessage(
            "celebration", f"streak_{s.just_hit_streak_milestone}", {**name, "streak": s.current_streak}
        )

    if s.days_since_last_practice >= LONG_ABSENCE_DAYS:
        return SupportMessage("welcome_back", "welcome_back_long", name, "easy_practice")
    if s.days_since_last_practice >= SHORT_ABSENCE_DAYS:
        return SupportMessage("welcome_back", "welcome_back_short", name, "quick_practice")

    if s.consecutive_anxious_responses >= ANXIOUS_RUN_THRESHOLD:
        return SupportMessage("tough_day", "tough_stretch", name, "easier_cue")
    if s.consecutive_frustrated_sessions >= FRUSTRATED_RUN_THRESHOLD:
        return SupportMessage("tough_day", "owner_frustrated", name)

    if s.first_mastery:
        return SupportMessage("celebration", "first_mastery", name)

    if s.current_streak >= ON_FIRE_MIN_STREAK and s.practices_this_week >= ON_FIRE_MIN_WEEKLY_PRACTICES:
        return SupportMessage(
            "encouragement",
            "on_fire",
            {**name, "streak": s.current_streak, "practices_this_week": s.practices_this_week},
        )

    if (
        s.cues_mastered >= ABSENCE_READY_MIN_MASTERED
        and s.days_since_last_session > ABSENCE_READY_MIN_DAYS_SINCE_SESSION
    ):
        return SupportMessage(
            "tip", "absence_ready", {**name, "cues_mastered": s.cues_mastered}, "absence_training"
        )

    return None


def select_post_practice_message(
    response: str,
    consecutive_calm: int,
    consecutive_anxious: int,
) -> str | None:
    """Template id for the line shown right after a single practice rep."""
    if response == RESPONSE_CALM:
        if consecutive_calm == 1:
            return "calm_first"
        if consecutive_calm == 3:
            return "calm_three_in_a_row"
        if consecutive_calm >= 5:
            return "calm_superstar"
        return "calm_keep_going"

    if response == RESPONSE_SLIGHT_REACTION:
        return "slight_reaction"

    if response == RESPONSE_ANXIOUS:
        if consecutive_anxious == 1:
            return "anxious_once"
        if consecutive_anxious == 2:
            return "anxious_twice"
        if consecutive_anxious >= 3:
            return "anxious_hard_day"

    return None
