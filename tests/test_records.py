"""Tests for store row validation."""

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from pawcalm_workers.records import (
    CueCounterRecord,
    PracticeRecord,
    SessionRecord,
    SubjectRecord,
    parse_rows,
)

CREATED = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class TestPracticeRecord:
    def test_extracts_responses_in_order(self):
        dog_id = uuid.uuid4()
        record = PracticeRecord.model_validate({
            "dog_id": dog_id,
            "created_at": CREATED,
            "cues": [
                {"cue_id": "a", "response": "anxious"},
                {"cue_id": "b"},
                "garbage",
                {"cue_id": "c", "response": "calm"},
            ],
            "time_of_day": "",
        })
        event = record.to_event()
        assert event.subject_id == str(dog_id)
        assert event.responses == ("anxious", "calm")
        assert event.time_of_day is None

    def test_null_cues(self):
        record = PracticeRecord.model_validate({"dog_id": "d", "created_at": CREATED, "cues": None})
        assert record.to_event().responses == ()


class TestSessionRecord:
    def test_blank_labels_are_none(self):
        record = SessionRecord.model_validate({
            "dog_id": "d",
            "created_at": "2026-03-10T09:00:00+00:00",
            "dog_response": "great",
            "owner_feeling": " ",
            "outcome": None,
        })
        event = record.to_event()
        assert event.dog_response == "great"
        assert event.owner_feeling is None
        assert event.occurred_at == CREATED


class TestCueCounterRecord:
    def test_null_counts_default_to_zero(self):
        record = CueCounterRecord.model_validate({
            "id": uuid.uuid4(),
            "dog_id": "d",
            "name": None,
            "calm_count": None,
            "total_practices": None,
            "mastered_at": None,
        })
        counter = record.to_counter()
        assert counter.calm_count == 0
        assert counter.total_practices == 0
        assert counter.name == ""

    def test_inconsistent_counts_kept(self):
        record = CueCounterRecord.model_validate(
            {"id": "c", "dog_id": "d", "calm_count": 9, "total_practices": 2}
        )
        assert record.to_counter().calm_count == 9


class TestSubjectRecord:
    def test_reminder_hour_range(self):
        with pytest.raises(ValidationError):
            SubjectRecord.model_validate({"id": "d", "reminder_hour": 24})


class TestParseRows:
    def test_skips_invalid_rows(self, caplog):
        rows = [
            {"dog_id": "d", "created_at": CREATED},
            {"dog_id": "d", "created_at": "not-a-date"},
            {"created_at": CREATED},
        ]
        with caplog.at_level("WARNING"):
            parsed = parse_rows(SessionRecord, rows)
        assert len(parsed) == 1
        assert caplog.text.count("Skipping invalid SessionRecord row") == 2
