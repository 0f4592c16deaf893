"""Tests for recent-window extraction and leading-run detection."""

from datetime import datetime, timedelta, timezone

from pawcalm_workers.models import PracticeEvent, SessionEvent
from pawcalm_workers.patterns import (
    consecutive_anxious,
    consecutive_frustrated,
    leading_run,
    recent_owner_feelings,
    recent_responses,
)

BASE = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _practice(i, *responses):
    return PracticeEvent("dog-1", BASE - timedelta(hours=i), tuple(responses))


def _session(i, feeling):
    return SessionEvent("dog-1", BASE - timedelta(hours=i), owner_feeling=feeling)


class TestLeadingRun:
    def test_prefix_run(self):
        assert consecutive_anxious(["anxious", "anxious", "calm", "anxious"]) == 2

    def test_no_run(self):
        assert consecutive_anxious(["calm", "anxious"]) == 0

    def test_empty(self):
        assert leading_run([], "anxious") == 0

    def test_whole_sequence(self):
        assert consecutive_frustrated(["frustrated"] * 4) == 4


class TestRecentResponses:
    def test_encounter_order_across_practices(self):
        practices = [_practice(0, "anxious", "calm"), _practice(1, "calm")]
        assert recent_responses(practices) == ["anxious", "calm", "calm"]

    def test_bounded_to_ten(self):
        practices = [_practice(i, "calm", "anxious", "calm") for i in range(6)]
        assert len(recent_responses(practices)) == 10

    def test_skips_empty_labels(self):
        assert recent_responses([_practice(0, "", "calm")]) == ["calm"]


class TestRecentOwnerFeelings:
    def test_drops_missing_and_bounds_to_five(self):
        sessions = [_session(0, None)] + [_session(i, "frustrated") for i in range(1, 8)]
        feelings = recent_owner_feelings(sessions)
        assert feelings == ["frustrated"] * 5
