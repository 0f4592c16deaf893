"""Daily rotating platform insight.

The candidate pool is rebuilt from the latest aggregate facts on every call.
A fact that fails its significance guard, or is missing or malformed,
contributes nothing. The pick is ``day_of_year % len(pool)``, so it is stable
for a calendar day and a fixed set of facts.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .utils import local_date_for_timezone

MIN_TOTAL_CUES_MASTERED = 10
MIN_TOTAL_PRACTICES = 100


def _section(facts: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = facts.get(key)
    return value if isinstance(value, Mapping) else {}


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _first_name(section: Mapping[str, Any], list_key: str) -> str | None:
    entries = section.get(list_key)
    if not isinstance(entries, list) or not entries:
        return None
    first = entries[0]
    if not isinstance(first, Mapping):
        return None
    name = first.get("name")
    return name if isinstance(name, str) and name else None


def build_insight_pool(facts: Mapping[str, Any]) -> list[str]:
    pool: list[str] = []

    best_time = _section(facts, "best_practice_time")
    time_slot = best_time.get("time")
    calm_rate = _number(best_time.get("calm_rate"))
    if isinstance(time_slot, str) and time_slot and calm_rate and calm_rate > 0:
        pool.append(f"Dogs are {calm_rate}% calmer during {time_slot} sessions. Try practicing then!")

    boost = _number(_section(facts, "consistency_stats").get("consistency_boost_pct"))
    if boost and boost > 0:
        pool.append(f"Owners who practice 3+ days/week see {boost}% better results.")

    difficulty = _section(facts, "cue_difficulty")
    hardest = _first_name(difficulty, "hardest")
    if hardest:
        pool.append(
            f'"{hardest}" is the toughest cue for most dogs. '
            "If yours struggles with it, you're not alone!"
        )
    popular = _first_name(difficulty, "most_mastered")
    if popular:
        pool.append(f'"{popular}" is the most commonly mastered cue. A great one to start with!')

    avg_days = _number(_section(facts, "mastery_stats").get("avg_days_to_first_mastery"))
    if avg_days:
        pool.append(f"Most dogs master their first cue in about {avg_days} days of practice.")

    platform = _section(facts, "platform_milestones")
    total_mastered = _number(platform.get("total_cues_mastered"))
    if total_mastered and total_mastered > MIN_TOTAL_CUES_MASTERED:
        pool.append(f"PawCalm dogs have mastered {total_mastered} cues together. You're part of something!")
    total_practices = _number(platform.get("total_practices"))
    if total_practices and total_practices > MIN_TOTAL_PRACTICES:
        pool.append(f"{total_practices:,} practice reps logged by the PawCalm community!")

    return pool


def day_of_year(day: date) -> int:
    """1-based ordinal of ``day`` within its year (Jan 1 -> 1)."""
    return day.timetuple().tm_yday


def select_daily_insight(
    facts: Mapping[str, Any],
    now: datetime,
    timezone_name: str,
) -> str | None:
    pool = build_insight_pool(facts)
    if not pool:
        return None
    today = local_date_for_timezone(now, timezone_name)
    return pool[day_of_year(today) % len(pool)]
