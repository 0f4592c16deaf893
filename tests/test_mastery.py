"""Tests for cue mastery classification."""

from datetime import datetime, timezone

from pawcalm_workers.mastery import (
    is_malformed,
    is_mastered,
    just_mastered_cue,
    mastered_cues,
)
from pawcalm_workers.models import CueCounter


def _cue(cue_id="c1", calm=0, total=0, mastered_at=None, name="keys"):
    return CueCounter(
        cue_id=cue_id,
        subject_id="dog-1",
        name=name,
        calm_count=calm,
        total_practices=total,
        mastered_at=mastered_at,
    )


class TestIsMastered:
    def test_ratio_and_floor_met(self):
        assert is_mastered(_cue(calm=5, total=7)) is True

    def test_below_absolute_floor(self):
        assert is_mastered(_cue(calm=4, total=5)) is False

    def test_below_ratio(self):
        assert is_mastered(_cue(calm=6, total=9)) is False

    def test_exact_ratio_boundary(self):
        assert is_mastered(_cue(calm=7, total=10)) is True

    def test_zero_practices_never_mastered(self):
        assert is_mastered(_cue(calm=5, total=0)) is False

    def test_malformed_counter_not_mastered(self):
        assert is_malformed(_cue(calm=8, total=6)) is True
        assert is_mastered(_cue(calm=8, total=6)) is False

    def test_negative_counts_malformed(self):
        assert is_malformed(_cue(calm=-1, total=3)) is True
        assert is_mastered(_cue(calm=-1, total=3)) is False


class TestMasteredCues:
    def test_filters_and_skips_malformed(self):
        cues = [
            _cue("a", calm=5, total=5),
            _cue("b", calm=2, total=10),
            _cue("c", calm=9, total=3),
        ]
        assert [c.cue_id for c in mastered_cues(cues)] == ["a"]


class TestJustMastered:
    NOW = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)

    def test_mastered_today(self):
        cues = [
            _cue("a", mastered_at=datetime(2026, 3, 1, tzinfo=timezone.utc)),
            _cue("b", mastered_at=datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc), name="shoes"),
        ]
        assert just_mastered_cue(cues, self.NOW, "UTC").name == "shoes"

    def test_none_today(self):
        cues = [_cue("a", mastered_at=datetime(2026, 3, 9, 23, 0, tzinfo=timezone.utc))]
        assert just_mastered_cue(cues, self.NOW, "UTC") is None

    def test_uses_reference_timezone(self):
        # 23:00 UTC on Mar 9 is Mar 10 in Berlin.
        cues = [_cue("a", mastered_at=datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc))]
        assert just_mastered_cue(cues, self.NOW, "Europe/Berlin") is not None
