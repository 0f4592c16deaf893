"""Pydantic validation of raw store rows.

Rows come back from psycopg as dicts. Each model validates one row and
converts it into the engine's frozen value types. Rows that fail validation
are dropped by ``parse_rows`` with a warning, so one bad row degrades a
subject's snapshot instead of failing the job.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError, field_validator

from .models import CueCounter, PracticeEvent, SessionEvent

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _as_id(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PracticeRecord(BaseModel):
    dog_id: str
    created_at: datetime
    cues: list[dict[str, Any]] | None = None
    time_of_day: str | None = None

    @field_validator("dog_id", mode="before")
    @classmethod
    def dog_id_as_str(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("cues", mode="before")
    @classmethod
    def keep_dict_entries(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [entry for entry in v if isinstance(entry, dict)]
        return v

    @field_validator("time_of_day", mode="before")
    @classmethod
    def time_of_day_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_event(self) -> PracticeEvent:
        responses = tuple(
            str(entry["response"]) for entry in (self.cues or []) if entry.get("response")
        )
        return PracticeEvent(
            subject_id=self.dog_id,
            occurred_at=self.created_at,
            responses=responses,
            time_of_day=self.time_of_day,
        )


class SessionRecord(BaseModel):
    dog_id: str
    created_at: datetime
    dog_response: str | None = None
    owner_feeling: str | None = None
    outcome: str | None = None

    @field_validator("dog_id", mode="before")
    @classmethod
    def dog_id_as_str(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("dog_response", "owner_feeling", "outcome", mode="before")
    @classmethod
    def labels_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_event(self) -> SessionEvent:
        return SessionEvent(
            subject_id=self.dog_id,
            occurred_at=self.created_at,
            dog_response=self.dog_response,
            owner_feeling=self.owner_feeling,
            outcome=self.outcome,
        )


class CueCounterRecord(BaseModel):
    """A cue counter row.

    Negative or inconsistent counts are kept as-is; the mastery evaluator
    treats them as not mastered.
    """

    id: str
    dog_id: str
    name: str = ""
    calm_count: int = 0
    total_practices: int = 0
    mastered_at: datetime | None = None

    @field_validator("id", "dog_id", mode="before")
    @classmethod
    def ids_as_str(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("calm_count", "total_practices", mode="before")
    @classmethod
    def null_count_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("name", mode="before")
    @classmethod
    def null_name_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_counter(self) -> CueCounter:
        return CueCounter(
            cue_id=self.id,
            subject_id=self.dog_id,
            name=self.name,
            calm_count=self.calm_count,
            total_practices=self.total_practices,
            mastered_at=self.mastered_at,
        )


class SubjectRecord(BaseModel):
    id: str
    name: str = ""
    owner_phone: str | None = None
    reminder_hour: int | None = None
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("name", mode="before")
    @classmethod
    def null_name_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("reminder_hour")
    @classmethod
    def hour_in_range(cls, v: int | None) -> int | None:
        if v is not None and not 0 <= v <= 23:
            raise ValueError("reminder_hour must be between 0 and 23")
        return v


def parse_rows(model: type[RecordT], rows: Iterable[dict[str, Any]]) -> list[RecordT]:
    """Validate rows into ``model``, skipping (and logging) invalid ones."""
    parsed: list[RecordT] = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid %s row: %s",
                model.__name__,
                exc.errors(include_url=False),
            )
    return parsed
