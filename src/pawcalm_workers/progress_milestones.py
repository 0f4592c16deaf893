"""Progress milestone catalog.

Unlike celebrations, several progress milestones can unlock in one check;
they are returned in catalog order. ``unlocked`` is the caller's persisted
set of milestone ids.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Literal

Category = Literal["engagement", "cues", "sessions", "consistency", "breakthrough"]

NEXT_MILESTONE_CATEGORIES: tuple[Category, ...] = ("engagement", "cues", "sessions", "consistency")
NEXT_MILESTONE_LIMIT = 3


@dataclass(frozen=True)
class MilestoneProgress:
    total_practices: int = 0
    total_cues: int = 0
    cues_mastered: int = 0
    total_sessions: int = 0
    longest_absence_minutes: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    days_active: int = 0
    calm_responses: int = 0
    journal_entries: int = 0

    @property
    def best_streak(self) -> int:
        return max(self.current_streak, self.longest_streak)


@dataclass(frozen=True)
class ProgressMilestone:
    id: str
    title: str
    category: Category
    # None means the milestone is awarded by another part of the product
    # (e.g. first_open, overcame_setback) and never unlocks from counters.
    measure: Callable[[MilestoneProgress], int] | None = None
    target: int = 1

    def is_reached(self, progress: MilestoneProgress) -> bool:
        if self.measure is None:
            return False
        return self.measure(progress) >= self.target


def _practices(p: MilestoneProgress) -> int:
    return p.total_practices


def _mastered(p: MilestoneProgress) -> int:
    return p.cues_mastered


def _sessions(p: MilestoneProgress) -> int:
    return p.total_sessions


def _absence(p: MilestoneProgress) -> int:
    return p.longest_absence_minutes


def _streak(p: MilestoneProgress) -> int:
    return p.best_streak


def _days_active(p: MilestoneProgress) -> int:
    return p.days_active


def _journals(p: MilestoneProgress) -> int:
    return p.journal_entries


def _all_cues_mastered(p: MilestoneProgress) -> int:
    return int(p.total_cues > 0 and p.cues_mastered >= p.total_cues)


ALL_MILESTONES: tuple[ProgressMilestone, ...] = (
    ProgressMilestone("first_open", "First Step", "engagement"),
    ProgressMilestone("first_practice", "First Try", "engagement", _practices, 1),
    ProgressMilestone("five_practices", "Getting Started", "engagement", _practices, 5),
    ProgressMilestone("ten_practices", "Building Momentum", "engagement", _practices, 10),
    ProgressMilestone("twenty_five_practices", "Dedicated", "engagement", _practices, 25),
    ProgressMilestone("fifty_practices", "Committed", "engagement", _practices, 50),
    ProgressMilestone("hundred_practices", "Expert Practitioner", "engagement", _practices, 100),
    ProgressMilestone("first_calm", "First Calm Response", "cues", lambda p: p.calm_responses, 1),
    ProgressMilestone("three_calm_streak", "Calm Streak", "cues"),
    ProgressMilestone("first_mastery", "First Cue Mastered", "cues", _mastered, 1),
    ProgressMilestone("three_mastered", "Triple Mastery", "cues", _mastered, 3),
    ProgressMilestone("five_mastered", "Cue Champion", "cues", _mastered, 5),
    ProgressMilestone("all_cues_mastered", "Complete Mastery", "cues", _all_cues_mastered, 1),
    ProgressMilestone("first_session", "First Absence", "sessions", _sessions, 1),
    ProgressMilestone("first_success", "Successful Absence", "sessions"),
    ProgressMilestone("five_sessions", "Session Regular", "sessions", _sessions, 5),
    ProgressMilestone("five_minutes", "5 Minute Mark", "sessions", _absence, 5),
    ProgressMilestone("fifteen_minutes", "Quarter Hour", "sessions", _absence, 15),
    ProgressMilestone("thirty_minutes", "Half Hour Hero", "sessions", _absence, 30),
    ProgressMilestone("one_hour", "Hour of Freedom", "sessions", _absence, 60),
    ProgressMilestone("three_day_streak", "3 Day Streak", "consistency", _streak, 3),
    ProgressMilestone("seven_day_streak", "Week Warrior", "consistency", _streak, 7),
    ProgressMilestone("fourteen_day_streak", "Two Week Champion", "consistency", _streak, 14),
    ProgressMilestone("thirty_day_streak", "Monthly Master", "consistency", _streak, 30),
    ProgressMilestone("week_active", "First Week", "consistency", _days_active, 7),
    ProgressMilestone("month_active", "One Month Journey", "consistency", _days_active, 30),
    ProgressMilestone("first_journal", "Reflective", "breakthrough", _journals, 1),
    ProgressMilestone("ten_journals", "Dedicated Journaler", "breakthrough", _journals, 10),
    ProgressMilestone("overcame_setback", "Resilient", "breakthrough"),
    ProgressMilestone("pattern_discovered", "Pattern Spotter", "breakthrough"),
)

_BY_ID: dict[str, ProgressMilestone] = {m.id: m for m in ALL_MILESTONES}


def check_progress_milestones(
    progress: MilestoneProgress,
    unlocked: Iterable[str],
) -> list[ProgressMilestone]:
    """Milestones reached by ``progress`` that are not yet in ``unlocked``."""
    already = set(unlocked)
    return [
        m for m in ALL_MILESTONES
        if m.id not in already and m.is_reached(progress)
    ]


def next_milestones(unlocked: Iterable[str]) -> list[ProgressMilestone]:
    """First locked milestone of each tracked category, at most three."""
    already = set(unlocked)
    upcoming: list[ProgressMilestone] = []
    for category in NEXT_MILESTONE_CATEGORIES:
        for milestone in ALL_MILESTONES:
            if milestone.category == category and milestone.id not in already:
                upcoming.append(milestone)
                break
    return upcoming[:NEXT_MILESTONE_LIMIT]


def milestone_progress(milestone_id: str, progress: MilestoneProgress) -> dict[str, int] | None:
    """Current/target/percentage for count-based milestones with a target above one."""
    milestone = _BY_ID.get(milestone_id)
    if milestone is None or milestone.measure is None or milestone.target <= 1:
        return None
    # Streak progress bars follow the running streak, not the best one.
    if milestone.measure is _streak:
        current = progress.current_streak
    else:
        current = milestone.measure(progress)
    return {
        "current": current,
        "target": milestone.target,
        "percentage": min(100, round(current / milestone.target * 100)),
    }
