"""Tests for recurring scheduler helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from pawcalm_workers.scheduler import (
    hour_bucket,
    insights_refresh_interval_hours,
    is_run_due,
    reminder_sweep_interval_hours,
    scheduled_at_from_payload,
)
from pawcalm_workers.worker import retry_backoff_seconds


def test_reminder_sweep_interval_default(monkeypatch):
    monkeypatch.delenv("PAWCALM_REMINDER_SWEEP_HOURS", raising=False)
    assert reminder_sweep_interval_hours() == 1


def test_insights_refresh_interval_clamps_to_positive(monkeypatch):
    monkeypatch.setenv("PAWCALM_INSIGHTS_REFRESH_HOURS", "-5")
    assert insights_refresh_interval_hours() == 1


def test_insights_refresh_interval_invalid(monkeypatch):
    monkeypatch.setenv("PAWCALM_INSIGHTS_REFRESH_HOURS", "abc")
    assert insights_refresh_interval_hours() == 24


class TestIsRunDue:
    def test_due_without_history(self):
        now = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
        assert is_run_due(now, None, 1) is True

    def test_not_due_within_same_hour(self):
        now = datetime(2026, 3, 10, 10, 45, tzinfo=timezone.utc)
        assert is_run_due(now, now - timedelta(minutes=40), 1) is False

    def test_due_at_next_hour_even_when_under_an_hour_elapsed(self):
        last = datetime(2026, 3, 10, 10, 59, 58, tzinfo=timezone.utc)
        now = datetime(2026, 3, 10, 11, 0, 3, tzinfo=timezone.utc)
        assert is_run_due(now, last, 1) is True

    def test_daily_interval(self):
        last = datetime(2026, 3, 10, 3, 30, tzinfo=timezone.utc)
        assert is_run_due(last + timedelta(hours=23), last, 24) is False
        assert is_run_due(last + timedelta(hours=24), last, 24) is True

    def test_rejects_non_positive_interval(self):
        now = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
        with pytest.raises(ValueError):
            is_run_due(now, now, 0)

    def test_drifting_ticks_cover_every_hour(self):
        # Each poll lands a little later than the last; no hour may be skipped.
        tick = datetime(2026, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
        end = tick + timedelta(hours=24)
        last_run = None
        run_hours = []
        while tick < end:
            if is_run_due(tick, last_run, 1):
                last_run = tick
                run_hours.append(tick.hour)
            tick += timedelta(seconds=7)
        assert run_hours == list(range(24))

    def test_half_hour_offset_timezone(self):
        # Kolkata hours start at :30 UTC.
        last = datetime(2026, 3, 10, 10, 20, tzinfo=timezone.utc)
        now = datetime(2026, 3, 10, 10, 35, tzinfo=timezone.utc)
        assert is_run_due(now, last, 1, "Asia/Kolkata") is True
        assert is_run_due(now, last, 1, "UTC") is False


def test_hour_bucket_in_reference_timezone():
    ts = datetime(2026, 3, 10, 10, 50, tzinfo=timezone.utc)
    assert hour_bucket(ts) == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
    assert hour_bucket(ts, "Asia/Kolkata") == datetime(2026, 3, 10, 10, 30, tzinfo=timezone.utc)


class TestScheduledAtFromPayload:
    def test_reads_stamp(self):
        payload = {"scheduled_at": "2026-03-10T10:59:58+00:00"}
        assert scheduled_at_from_payload(payload) == datetime(
            2026, 3, 10, 10, 59, 58, tzinfo=timezone.utc
        )

    def test_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        assert scheduled_at_from_payload({"scheduled_at": "soon"}) >= before
        assert scheduled_at_from_payload({}) >= before


def test_retry_backoff_doubles():
    assert [retry_backoff_seconds(a) for a in (1, 2, 3)] == [2, 4, 8]
