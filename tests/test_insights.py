"""Tests for the daily rotating insight."""

from datetime import date, datetime, timezone

from pawcalm_workers.insights import build_insight_pool, day_of_year, select_daily_insight

FULL_FACTS = {
    "best_practice_time": {"time": "evening", "calm_rate": 72},
    "consistency_stats": {"consistency_boost_pct": 18},
    "cue_difficulty": {
        "hardest": [{"name": "Keys jingle", "calm_rate": 31}],
        "most_mastered": [{"name": "Shoes on", "times_mastered": 14}],
    },
    "mastery_stats": {"avg_days_to_first_mastery": 9},
    "platform_milestones": {"total_cues_mastered": 42, "total_practices": 12500},
}


class TestBuildInsightPool:
    def test_all_facts_pass(self):
        pool = build_insight_pool(FULL_FACTS)
        assert len(pool) == 7
        assert pool[0] == "Dogs are 72% calmer during evening sessions. Try practicing then!"
        assert pool[-1] == "12,500 practice reps logged by the PawCalm community!"

    def test_guards_drop_insignificant_facts(self):
        facts = {
            "best_practice_time": {"time": "morning", "calm_rate": 0},
            "consistency_stats": {"consistency_boost_pct": 0},
            "cue_difficulty": {"hardest": [], "most_mastered": []},
            "mastery_stats": {"avg_days_to_first_mastery": None},
            "platform_milestones": {"total_cues_mastered": 10, "total_practices": 100},
        }
        assert build_insight_pool(facts) == []

    def test_malformed_facts_ignored(self):
        facts = {
            "best_practice_time": "evening",
            "cue_difficulty": {"hardest": ["not-a-dict"]},
            "platform_milestones": {"total_practices": "lots"},
        }
        assert build_insight_pool(facts) == []


class TestSelectDailyInsight:
    def test_empty_pool_yields_none(self):
        now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert select_daily_insight({}, now, "UTC") is None

    def test_same_day_same_insight(self):
        morning = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
        evening = datetime(2026, 3, 10, 22, 0, tzinfo=timezone.utc)
        assert select_daily_insight(FULL_FACTS, morning, "UTC") == select_daily_insight(
            FULL_FACTS, evening, "UTC"
        )

    def test_rotates_by_day_of_year(self):
        pool = build_insight_pool(FULL_FACTS)
        now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert select_daily_insight(FULL_FACTS, now, "UTC") == pool[69 % len(pool)]

    def test_single_entry_pool_always_selected(self):
        facts = {"consistency_stats": {"consistency_boost_pct": 5}}
        for day in (date(2026, 1, 1), date(2026, 1, 2), date(2026, 7, 19), date(2026, 12, 31)):
            now = datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)
            assert select_daily_insight(facts, now, "UTC") == (
                "Owners who practice 3+ days/week see 5% better results."
            )


def test_day_of_year_is_one_based():
    assert day_of_year(date(2026, 1, 1)) == 1
    assert day_of_year(date(2026, 3, 10)) == 69
    assert day_of_year(date(2024, 12, 31)) == 366
