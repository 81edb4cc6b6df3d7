from __future__ import annotations

import datetime
from typing import Annotated, NamedTuple, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from settings_schema import SettingsSchema


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Return ``value`` as timezone-aware datetime, assuming UTC when naive."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


Timestamp = Annotated[datetime.datetime, AfterValidator(as_utc)]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Record(BaseModel):
    """Base for persisted records; JSON uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SetEntry(Record):
    set_index: int = Field(
        ge=1,
        validation_alias=AliasChoices("setIndex", "set", "set_index"),
        serialization_alias="setIndex",
    )
    weight_kg: float = Field(ge=0)
    reps: int = Field(ge=0)


class Cardio(Record):
    type: str
    minutes: int = Field(
        0,
        ge=0,
        validation_alias=AliasChoices("minutes", "mins"),
        serialization_alias="minutes",
    )
    notes: str = ""


class Workout(Record):
    id: str
    template_id: str
    template_name: str
    started_at: Timestamp
    finished_at: Optional[Timestamp] = None
    cardio: Optional[Cardio] = None
    notes: str = ""

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None


class ExerciseLog(Record):
    """All sets logged for one exercise within one workout."""

    workout_id: str
    exercise_id: str
    finished_at: Optional[Timestamp] = None
    notes: str = ""
    sets: list[SetEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_set_indexes(self) -> "ExerciseLog":
        indexes = [s.set_index for s in self.sets]
        if indexes != list(range(1, len(indexes) + 1)):
            raise ValueError("set indexes must run 1..N without gaps")
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.workout_id, self.exercise_id)


class Action(Record):
    exercise_id: str
    text: str
    updated_at: Timestamp


class Snapshot(Record):
    """Full backup of every persisted collection."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    exported_at: Timestamp
    workouts: list[Workout]
    exercise_logs: list[ExerciseLog]
    actions: list[Action]
    settings: SettingsSchema


class TopSet(NamedTuple):
    weight_kg: float
    reps: int


class LastPerformance(NamedTuple):
    top: TopSet
    sets: int
    when: datetime.datetime


class BestPerformance(NamedTuple):
    top: TopSet
    when: datetime.datetime


class ExerciseStats(NamedTuple):
    last: Optional[LastPerformance] = None
    best: Optional[BestPerformance] = None
