"""Early-warning run detection over recency-ordered responses and feelings."""

from collections.abc import Iterable, Sequence

from .models import RESPONSE_ANXIOUS, OWNER_FEELING_FRUSTRATED, PracticeEvent, SessionEvent

RECENT_PRACTICE_LIMIT = 20
RECENT_SESSION_LIMIT = 10
RECENT_RESPONSE_LIMIT = 10
RECENT_FEELING_LIMIT = 5


def recent_responses(
    practices: Iterable[PracticeEvent],
    limit: int = RECENT_RESPONSE_LIMIT,
) -> list[str]:
    """Up to ``limit`` response labels, most recent practice first.

    Labels inside one practice keep their logged order; empty labels are skipped.
    """
    responses: list[str] = []
    for practice in practices:
        for label in practice.responses:
            if len(responses) >= limit:
                return responses
            if label:
                responses.append(label)
    return responses


def recent_owner_feelings(
    sessions: Iterable[SessionEvent],
    limit: int = RECENT_FEELING_LIMIT,
) -> list[str]:
    feelings = [s.owner_feeling for s in sessions if s.owner_feeling]
    return feelings[:limit]


def leading_run(values: Sequence[str], label: str) -> int:
    """Length of the run of ``label`` at the head of ``values``."""
    run = 0
    for value in values:
        if value != label:
            break
        run += 1
    return run


def consecutive_anxious(responses: Sequence[str]) -> int:
    return leading_run(responses, RESPONSE_ANXIOUS)


def consecutive_frustrated(feelings: Sequence[str]) -> int:
    return leading_run(feelings, OWNER_FEELING_FRUSTRATED)
