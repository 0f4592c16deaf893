"""Platform-wide aggregate facts feeding the daily insight.

Computed on a schedule from a bounded slice of recent practices plus all cue
counters and subjects. Output keys and shapes are what
``insights.build_insight_pool`` reads.
"""

from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Any

from .models import RESPONSE_CALM, CueCounter, PracticeEvent
from .utils import as_utc, local_date_for_timezone

PLATFORM_PRACTICE_LIMIT = 5000
TIME_SLOTS: tuple[str, ...] = ("morning", "afternoon", "evening")
DEFAULT_TIME_SLOT = "morning"
MIN_SLOT_RESPONSES = 10
MIN_CUE_PRACTICES = 10
CUE_RANKING_SIZE = 3
CONSISTENT_DAYS_IN_TWO_WEEKS = 6
MAX_DAYS_TO_FIRST_MASTERY = 365


def _pct(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


def _calm_tally(practices: Sequence[PracticeEvent]) -> tuple[int, int]:
    calm = total = 0
    for practice in practices:
        for label in practice.responses:
            total += 1
            if label == RESPONSE_CALM:
                calm += 1
    return calm, total


def best_practice_time(practices: Sequence[PracticeEvent]) -> dict[str, Any]:
    stats = {slot: {"total": 0, "calm": 0} for slot in TIME_SLOTS}
    for practice in practices:
        slot = practice.time_of_day or DEFAULT_TIME_SLOT
        if slot not in stats:
            continue
        for label in practice.responses:
            stats[slot]["total"] += 1
            if label == RESPONSE_CALM:
                stats[slot]["calm"] += 1

    best_time = DEFAULT_TIME_SLOT
    best_rate = 0
    for slot, counts in stats.items():
        if counts["total"] < MIN_SLOT_RESPONSES:
            continue
        rate = _pct(counts["calm"], counts["total"])
        if rate > best_rate:
            best_rate = rate
            best_time = slot

    return {
        "time": best_time,
        "calm_rate": best_rate,
        "all_times": {slot: _pct(c["calm"], c["total"]) for slot, c in stats.items()},
        "sample_size": sum(c["total"] for c in stats.values()),
    }


def cue_difficulty(cues: Sequence[CueCounter]) -> dict[str, Any]:
    groups: dict[str, dict[str, Any]] = {}
    for cue in cues:
        key = cue.name.strip().lower()
        group = groups.setdefault(
            key, {"name": cue.name, "total": 0, "calm": 0, "mastered": 0, "practices_to_master": []}
        )
        group["total"] += max(cue.total_practices, 0)
        group["calm"] += max(cue.calm_count, 0)
        if cue.mastered_at is not None:
            group["mastered"] += 1
            group["practices_to_master"].append(max(cue.total_practices, 0))

    ranked = sorted(
        (
            {
                "name": g["name"],
                "calm_rate": _pct(g["calm"], g["total"]),
                "total_practices": g["total"],
                "times_mastered": g["mastered"],
                "avg_practices_to_master": (
                    round(mean(g["practices_to_master"])) if g["practices_to_master"] else None
                ),
            }
            for g in groups.values()
            if g["total"] >= MIN_CUE_PRACTICES
        ),
        key=lambda entry: entry["calm_rate"],
    )

    return {
        "hardest": ranked[:CUE_RANKING_SIZE],
        "easiest": list(reversed(ranked[-CUE_RANKING_SIZE:])),
        "most_mastered": sorted(ranked, key=lambda e: e["times_mastered"], reverse=True)[
            :CUE_RANKING_SIZE
        ],
    }


def mastery_stats(
    cues: Sequence[CueCounter],
    subjects_created_at: Mapping[str, datetime],
) -> dict[str, Any]:
    mastered = [c for c in cues if c.mastered_at is not None]
    first_mastery: dict[str, datetime] = {}
    for cue in mastered:
        mastered_at = as_utc(cue.mastered_at)
        current = first_mastery.get(cue.subject_id)
        if current is None or mastered_at < current:
            first_mastery[cue.subject_id] = mastered_at

    days_to_first: list[int] = []
    for subject_id, mastered_at in first_mastery.items():
        created_at = subjects_created_at.get(subject_id)
        if created_at is None:
            continue
        days = (mastered_at - as_utc(created_at)) // timedelta(days=1)
        if 0 <= days < MAX_DAYS_TO_FIRST_MASTERY:
            days_to_first.append(days)

    total_subjects = len(subjects_created_at)
    return {
        "total_cues_mastered": len(mastered),
        "dogs_with_mastery": len(first_mastery),
        "total_dogs": total_subjects,
        "pct_dogs_with_mastery": _pct(len(first_mastery), total_subjects),
        "avg_days_to_first_mastery": round(mean(days_to_first)) if days_to_first else None,
    }


def consistency_stats(
    practices: Sequence[PracticeEvent],
    now: datetime,
    timezone_name: str,
) -> dict[str, Any]:
    practice_days: dict[str, set[date]] = defaultdict(set)
    for practice in practices:
        practice_days[practice.subject_id].add(
            local_date_for_timezone(practice.occurred_at, timezone_name)
        )
    active_subjects = len(practice_days)
    total_days = sum(len(days) for days in practice_days.values())

    window_start = as_utc(now) - timedelta(days=14)
    recent = [p for p in practices if as_utc(p.occurred_at) >= window_start]
    recent_days: dict[str, set[date]] = defaultdict(set)
    for practice in recent:
        recent_days[practice.subject_id].add(
            local_date_for_timezone(practice.occurred_at, timezone_name)
        )
    consistent = {s for s, days in recent_days.items() if len(days) >= CONSISTENT_DAYS_IN_TWO_WEEKS}
    inconsistent = set(recent_days) - consistent

    consistent_calm, consistent_total = _calm_tally([p for p in recent if p.subject_id in consistent])
    inconsistent_calm, inconsistent_total = _calm_tally(
        [p for p in recent if p.subject_id in inconsistent]
    )
    consistent_rate = _pct(consistent_calm, consistent_total)
    inconsistent_rate = _pct(inconsistent_calm, inconsistent_total)

    return {
        "avg_practice_days_per_dog": round(total_days / active_subjects) if active_subjects else 0,
        "consistent_dogs": len(consistent),
        "inconsistent_dogs": len(inconsistent),
        "consistent_calm_rate": consistent_rate,
        "inconsistent_calm_rate": inconsistent_rate,
        "consistency_boost_pct": max(consistent_rate - inconsistent_rate, 0),
    }


def weekly_trends(practices: Sequence[PracticeEvent], now: datetime) -> dict[str, Any]:
    one_week_ago = as_utc(now) - timedelta(days=7)
    two_weeks_ago = as_utc(now) - timedelta(days=14)
    this_week = [p for p in practices if as_utc(p.occurred_at) >= one_week_ago]
    last_week = [p for p in practices if two_weeks_ago <= as_utc(p.occurred_at) < one_week_ago]

    def _summary(window: list[PracticeEvent]) -> dict[str, int]:
        calm, total = _calm_tally(window)
        return {
            "total_practices": total,
            "calm_rate": _pct(calm, total),
            "active_dogs": len({p.subject_id for p in window}),
        }

    this_summary = _summary(this_week)
    last_summary = _summary(last_week)
    return {
        "this_week": this_summary,
        "last_week": last_summary,
        "calm_rate_change": this_summary["calm_rate"] - last_summary["calm_rate"],
    }


def compute_aggregate_facts(
    practices: Sequence[PracticeEvent],
    cues: Sequence[CueCounter],
    subjects_created_at: Mapping[str, datetime],
    *,
    now: datetime,
    timezone_name: str,
) -> dict[str, dict[str, Any]]:
    """Compute every aggregate fact keyed by its insight key."""
    mastery = mastery_stats(cues, subjects_created_at)
    return {
        "best_practice_time": best_practice_time(practices),
        "cue_difficulty": cue_difficulty(cues),
        "mastery_stats": mastery,
        "consistency_stats": consistency_stats(practices, now, timezone_name),
        "weekly_trends": weekly_trends(practices, now),
        "platform_milestones": {
            "total_practices": sum(len(p.responses) for p in practices),
            "total_cues_mastered": mastery["total_cues_mastered"],
            "total_dogs": len(subjects_created_at),
            "total_active_dogs": len({p.subject_id for p in practices}),
        },
    }
