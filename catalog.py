"""Static exercise and template catalogs.

Both catalogs are read-only reference data. Template order is the order
exercises are offered during a workout and the order used in reports.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict


class ExerciseType(str, Enum):
    STRENGTH = "strength"
    BODYWEIGHT = "bodyweight"


class Exercise(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    group: str
    type: ExerciseType = ExerciseType.STRENGTH


class Template(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    exercises: tuple[str, ...] = ()


CARDIO_TEMPLATE_ID = "cardio"

_EXERCISE_ROWS = [
    # Chest
    ("seated_chest_press", "Seated chest press", "Chest", "strength"),
    ("bench_press", "Bench press", "Chest", "strength"),
    ("decline_bench_press", "Decline bench press", "Chest", "strength"),
    ("incline_bench_press", "Incline bench press", "Chest", "strength"),
    ("seated_butterfly", "Seated butterfly", "Chest", "strength"),
    ("pushups", "Pushups", "Chest", "bodyweight"),
    # Arms
    ("seated_barbell", "Seated barbell", "Arms", "strength"),
    ("barbell_21s", "21’s barbell", "Arms", "strength"),
    ("tricep_pulldown", "Tricep pull down", "Arms", "strength"),
    ("dips", "Dips", "Arms", "bodyweight"),
    # Core
    ("situps", "Sit-ups", "Core", "bodyweight"),
    ("leg_raises", "Leg raises", "Core", "bodyweight"),
    ("cycle_crunch", "Cycle crunch", "Core", "bodyweight"),
    # Shoulders
    ("seated_shoulder_press", "Seated shoulder press", "Shoulders", "strength"),
    ("db_reverse_fly", "Dumbbell reverse fly", "Shoulders", "strength"),
    ("db_front_raises", "Dumbbell front raises", "Shoulders", "strength"),
    ("weight_steering", "Weight steering", "Shoulders", "strength"),
    # Back
    ("lat_pulldown", "Lat pull down", "Back", "strength"),
    ("seated_pulldown", "Seated pull down weights", "Back", "strength"),
    ("seated_pull_row", "Seated pull row weights", "Back", "strength"),
    ("back_extensions", "Back extensions", "Back", "bodyweight"),
    # Legs
    ("seated_squats", "Seated squats", "Legs", "strength"),
    ("calf_extensions", "Calf extensions", "Legs", "strength"),
    ("leg_extensions", "Leg extensions", "Legs", "strength"),
    ("leg_curl", "Leg curl", "Legs", "strength"),
]

_CORE = ("situps", "leg_raises", "cycle_crunch")

_TEMPLATE_ROWS = [
    (
        "w1",
        "Chest, Arms & Stomach",
        (
            "seated_chest_press",
            "bench_press",
            "incline_bench_press",
            "decline_bench_press",
            "seated_butterfly",
            "pushups",
            "seated_barbell",
            "barbell_21s",
            "tricep_pulldown",
            "dips",
        )
        + _CORE,
    ),
    (
        "w2",
        "Shoulders, Back & Stomach",
        (
            "seated_shoulder_press",
            "db_reverse_fly",
            "db_front_raises",
            "weight_steering",
            "lat_pulldown",
            "seated_pulldown",
            "seated_pull_row",
            "back_extensions",
        )
        + _CORE,
    ),
    (
        "w3",
        "Legs & Core",
        ("seated_squats", "calf_extensions", "leg_extensions", "leg_curl") + _CORE,
    ),
    (CARDIO_TEMPLATE_ID, "Cardio Only", ()),
]

EXERCISES: Mapping[str, Exercise] = MappingProxyType(
    {
        ex_id: Exercise(id=ex_id, name=name, group=group, type=ExerciseType(kind))
        for ex_id, name, group, kind in _EXERCISE_ROWS
    }
)

TEMPLATES: Mapping[str, Template] = MappingProxyType(
    {
        t_id: Template(id=t_id, name=name, exercises=exercises)
        for t_id, name, exercises in _TEMPLATE_ROWS
    }
)


def find_exercise(exercise_id: str) -> Optional[Exercise]:
    return EXERCISES.get(exercise_id)


def find_template(template_id: str) -> Optional[Template]:
    return TEMPLATES.get(template_id)


def template_order(template_id: str) -> tuple[str, ...]:
    """Return the exercise ids of ``template_id`` or an empty tuple."""
    template = TEMPLATES.get(template_id)
    if template is None:
        return ()
    return template.exercises
