"""One-time celebrations.

Each subject owns a set of milestone keys that have already been shown. The
evaluation takes that set as an immutable input and returns the successor
set; callers persist it inside the same per-subject critical section in which
they read it (see handlers/engagement_evaluate.py).

Rules are checked in CELEBRATION_PRIORITY order and at most one celebration
fires per evaluation. A key, once shown, stays shown.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .models import DOG_RESPONSE_GREAT, SessionEvent
from .streaks import compute_streak

STREAK_MILESTONES: tuple[int, ...] = (3, 7, 14, 30, 60, 90)


class MilestoneKind(StrEnum):
    FIRST_SESSION = "first_session"
    FIRST_GREAT = "first_great"
    STREAK_7 = "streak_7"
    STREAK_3 = "streak_3"


@dataclass(frozen=True)
class CelebrationContext:
    total_sessions: int
    has_great_session: bool
    streak: int


@dataclass(frozen=True)
class CelebrationRule:
    kind: MilestoneKind
    condition: Callable[[CelebrationContext], bool]


@dataclass(frozen=True)
class CelebrationResult:
    fired: MilestoneKind | None
    shown: frozenset[str]

    @property
    def fired_keys(self) -> list[str]:
        return [self.fired.value] if self.fired is not None else []


CELEBRATION_PRIORITY: tuple[CelebrationRule, ...] = (
    CelebrationRule(MilestoneKind.FIRST_SESSION, lambda ctx: ctx.total_sessions == 1),
    CelebrationRule(MilestoneKind.FIRST_GREAT, lambda ctx: ctx.has_great_session),
    CelebrationRule(MilestoneKind.STREAK_7, lambda ctx: ctx.streak >= 7),
    CelebrationRule(MilestoneKind.STREAK_3, lambda ctx: ctx.streak >= 3),
)


def celebration_context(
    sessions: Sequence[SessionEvent],
    now: datetime,
    timezone_name: str,
    *,
    total_sessions: int | None = None,
) -> CelebrationContext:
    """Build the celebration inputs from a subject's sessions.

    ``total_sessions`` overrides ``len(sessions)`` when the caller only holds
    a bounded slice of the history.
    """
    return CelebrationContext(
        total_sessions=len(sessions) if total_sessions is None else total_sessions,
        has_great_session=any(s.dog_response == DOG_RESPONSE_GREAT for s in sessions),
        streak=compute_streak((s.occurred_at for s in sessions), now, timezone_name),
    )


def evaluate_celebration(
    context: CelebrationContext,
    shown: Iterable[str],
    rules: Sequence[CelebrationRule] = CELEBRATION_PRIORITY,
) -> CelebrationResult:
    already_shown = frozenset(shown)
    for rule in rules:
        if rule.kind.value in already_shown:
            continue
        if rule.condition(context):
            return CelebrationResult(
                fired=rule.kind,
                shown=already_shown | {rule.kind.value},
            )
    return CelebrationResult(fired=None, shown=already_shown)


def streak_milestone_hit(streak: int) -> int | None:
    """The streak value itself when it lands exactly on a milestone day."""
    return streak if streak in STREAK_MILESTONES else None
