"""Cue mastery classification.

The mastery predicate is evaluated fresh on every read. ``mastered_at`` is
written elsewhere when the threshold is first crossed; here it only answers
"was this cue mastered today".
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from .models import CueCounter
from .utils import local_date_for_timezone

logger = logging.getLogger(__name__)

MASTERY_MIN_CALM = 5
MASTERY_MIN_CALM_RATIO = 0.7


def is_malformed(counter: CueCounter) -> bool:
    return (
        counter.calm_count < 0
        or counter.total_practices < 0
        or counter.total_practices < counter.calm_count
    )


def is_mastered(counter: CueCounter) -> bool:
    if counter.total_practices <= 0 or is_malformed(counter):
        return False
    return (
        counter.calm_count >= MASTERY_MIN_CALM
        and counter.calm_count / counter.total_practices >= MASTERY_MIN_CALM_RATIO
    )


def mastered_cues(counters: Iterable[CueCounter]) -> list[CueCounter]:
    mastered: list[CueCounter] = []
    for counter in counters:
        if is_malformed(counter):
            logger.warning(
                "Ignoring malformed cue counter cue=%s (calm=%d, total=%d)",
                counter.cue_id,
                counter.calm_count,
                counter.total_practices,
                extra={"pawcalm_subject_id": counter.subject_id},
            )
            continue
        if is_mastered(counter):
            mastered.append(counter)
    return mastered


def just_mastered_cue(
    counters: Iterable[CueCounter],
    now: datetime,
    timezone_name: str,
) -> CueCounter | None:
    """First cue whose ``mastered_at`` falls on today's reference date."""
    today = local_date_for_timezone(now, timezone_name)
    for counter in counters:
        if counter.mastered_at is None:
            continue
        if local_date_for_timezone(counter.mastered_at, timezone_name) == today:
            return counter
    return None
