"""Tests for engagement snapshot assembly."""

from datetime import datetime, timedelta, timezone

from pawcalm_workers.engagement import build_engagement_snapshot
from pawcalm_workers.models import CueCounter, PracticeEvent, SessionEvent
from pawcalm_workers.streaks import NO_ACTIVITY_DAYS

NOW = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def _snapshot(**overrides):
    inputs = {
        "practices": [],
        "sessions": [],
        "cues": [],
        "total_practice_count": 0,
        "practices_this_week": 0,
        "now": NOW,
        "timezone_name": "UTC",
    }
    inputs.update(overrides)
    return build_engagement_snapshot(**inputs)


def _practice(hours_ago, *responses):
    return PracticeEvent("dog-1", NOW - timedelta(hours=hours_ago), tuple(responses))


def _session(hours_ago, **fields):
    return SessionEvent("dog-1", NOW - timedelta(hours=hours_ago), **fields)


class TestEmptyHistory:
    def test_all_zero_snapshot(self):
        snapshot = _snapshot()
        assert snapshot.days_since_last_practice == NO_ACTIVITY_DAYS
        assert snapshot.days_since_last_session == NO_ACTIVITY_DAYS
        assert snapshot.current_streak == 0
        assert snapshot.longest_streak == 0
        assert snapshot.cues_mastered == 0
        assert snapshot.total_cues == 0
        assert snapshot.recent_responses == ()
        assert snapshot.first_practice is True
        assert snapshot.first_mastery is False
        assert snapshot.first_success is False
        assert snapshot.just_hit_streak_milestone is None
        assert snapshot.just_mastered_cue_name is None


class TestSnapshot:
    def test_streak_and_milestone(self):
        practices = [_practice(24 * d + 1, "calm") for d in range(7)]
        snapshot = _snapshot(practices=practices, total_practice_count=7)
        assert snapshot.current_streak == 7
        assert snapshot.just_hit_streak_milestone == 7
        assert snapshot.days_since_last_practice == 0
        assert snapshot.first_practice is False

    def test_best_streak_persists(self):
        snapshot = _snapshot(practices=[_practice(1, "calm")], previous_best_streak=11)
        assert snapshot.current_streak == 1
        assert snapshot.longest_streak == 11

    def test_unsorted_input_uses_most_recent_first(self):
        practices = [_practice(30, "calm"), _practice(1, "anxious", "anxious")]
        snapshot = _snapshot(practices=practices)
        assert snapshot.recent_responses == ("anxious", "anxious", "calm")
        assert snapshot.consecutive_anxious_responses == 2

    def test_frustration_run(self):
        sessions = [
            _session(1, owner_feeling="frustrated"),
            _session(30, owner_feeling="frustrated"),
            _session(60, owner_feeling="hopeful"),
        ]
        snapshot = _snapshot(sessions=sessions)
        assert snapshot.consecutive_frustrated_sessions == 2
        assert snapshot.days_since_last_session == 0

    def test_first_mastery_today(self):
        cues = [
            CueCounter("c1", "dog-1", "Keys", 5, 6, NOW - timedelta(hours=2)),
            CueCounter("c2", "dog-1", "Coat", 1, 6),
            CueCounter("c3", "dog-1", "Broken", 9, 2),
        ]
        snapshot = _snapshot(cues=cues)
        assert snapshot.cues_mastered == 1
        assert snapshot.total_cues == 3
        assert snapshot.first_mastery is True
        assert snapshot.just_mastered_cue_name == "Keys"
        assert snapshot.mastered_cue_ids == ("c1",)

    def test_first_success(self):
        sessions = [_session(1, outcome="success"), _session(30, outcome="partial")]
        assert _snapshot(sessions=sessions).first_success is True

    def test_as_dict_is_plain(self):
        data = _snapshot(practices=[_practice(1, "calm")]).as_dict()
        assert data["recent_responses"] == ["calm"]
        assert data["current_streak"] == 1
