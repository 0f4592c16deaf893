"""Core value types for the engagement engine.

Events and counters are read-only inputs fetched by the store adapter;
EngagementSnapshot is derived on every evaluation and never persisted as a
source of truth.
"""

from dataclasses import dataclass, field
from datetime import datetime

# Practice response labels
RESPONSE_CALM = "calm"
RESPONSE_SLIGHT_REACTION = "slight_reaction"
RESPONSE_ANXIOUS = "anxious"

# Session dog responses
DOG_RESPONSE_CALM = "calm"
DOG_RESPONSE_ANXIOUS = "anxious"
DOG_RESPONSE_GREAT = "great"
DOG_RESPONSE_STRUGGLED = "struggled"

# Owner feelings
OWNER_FEELING_FRUSTRATED = "frustrated"

# Session outcomes
OUTCOME_SUCCESS = "success"


@dataclass(frozen=True)
class PracticeEvent:
    """One cue practice record; ``responses`` keeps the per-cue order as logged."""

    subject_id: str
    occurred_at: datetime
    responses: tuple[str, ...] = ()
    time_of_day: str | None = None


@dataclass(frozen=True)
class SessionEvent:
    subject_id: str
    occurred_at: datetime
    dog_response: str | None = None
    owner_feeling: str | None = None
    outcome: str | None = None


@dataclass(frozen=True)
class CueCounter:
    cue_id: str
    subject_id: str
    name: str
    calm_count: int = 0
    total_practices: int = 0
    mastered_at: datetime | None = None


@dataclass(frozen=True)
class EngagementSnapshot:
    """Derived engagement state for one subject at one point in time."""

    days_since_last_practice: int
    days_since_last_session: int
    practices_this_week: int
    recent_responses: tuple[str, ...]
    recent_owner_feelings: tuple[str, ...]
    consecutive_anxious_responses: int
    consecutive_frustrated_sessions: int
    current_streak: int
    longest_streak: int
    cues_mastered: int
    total_cues: int
    first_practice: bool
    first_mastery: bool
    first_success: bool
    just_hit_streak_milestone: int | None
    just_mastered_cue_name: str | None
    mastered_cue_ids: tuple[str, ...] = field(default=())

    def as_dict(self) -> dict:
        return {
            "days_since_last_practice": self.days_since_last_practice,
            "days_since_last_session": self.days_since_last_session,
            "practices_this_week": self.practices_this_week,
            "recent_responses": list(self.recent_responses),
            "recent_owner_feelings": list(self.recent_owner_feelings),
            "consecutive_anxious_responses": self.consecutive_anxious_responses,
            "consecutive_frustrated_sessions": self.consecutive_frustrated_sessions,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "cues_mastered": self.cues_mastered,
            "total_cues": self.total_cues,
            "first_practice": self.first_practice,
            "first_mastery": self.first_mastery,
            "first_success": self.first_success,
            "just_hit_streak_milestone": self.just_hit_streak_milestone,
            "just_mastered_cue_name": self.just_mastered_cue_name,
            "mastered_cue_ids": list(self.mastered_cue_ids),
        }
