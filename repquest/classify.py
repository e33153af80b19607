"""Classification: exercise name -> skill, quick-log fields -> exercise type, validation, XP preview."""

from __future__ import annotations

from typing import Optional

from .levels import round_half_up
from .models import (
    BodyweightExercise,
    BodyweightSet,
    EnduranceData,
    EnduranceExercise,
    ExerciseBlock,
    ExerciseInput,
    ExerciseType,
    SkillName,
    StrengthExercise,
    StrengthSet,
)

# Exact synonym -> skill only. Lookup is on the lowercased, trimmed name; no fuzzy matching.
EXERCISE_TO_SKILL: dict[str, SkillName] = {
    "push-ups": "pushups",
    "pushups": "pushups",
    "push up": "pushups",
    "pushup": "pushups",
    "sit-ups": "situps",
    "situps": "situps",
    "sit up": "situps",
    "situp": "situps",
    "crunches": "situps",
    "crunch": "situps",
    "squats": "squats",
    "squat": "squats",
    "bodyweight squats": "squats",
    "air squats": "squats",
    "pull-ups": "pullups",
    "pullups": "pullups",
    "pull up": "pullups",
    "pullup": "pullups",
    "chin-ups": "pullups",
    "chinups": "pullups",
    "running": "5k",
    "run": "5k",
    "5k": "5k",
    "5k run": "5k",
    "jog": "5k",
    "jogging": "5k",
}

# Used when the name is not in the table
DEFAULT_SKILL_BY_TYPE: dict[str, SkillName] = {
    "bodyweight": "pushups",
    "strength": "squats",
    "endurance": "5k",
}

# Minimums an entry must meet to count
MIN_REPS = 1
MIN_WEIGHT = 1
MIN_DISTANCE_KM = 0.1
MIN_TIME_SECONDS = 60


def normalize_exercise_name(name: str) -> str:
    return (name or "").strip().lower()


def skill_for_exercise(name: str) -> Optional[SkillName]:
    """Skill for an exercise name via the synonym table; None when the name is unknown."""
    return EXERCISE_TO_SKILL.get(normalize_exercise_name(name))


def infer_skill_from_exercise(name: str, exercise_type: ExerciseType) -> SkillName:
    """Synonym table first, then the default skill for the exercise type."""
    mapped = skill_for_exercise(name)
    if mapped:
        return mapped
    return DEFAULT_SKILL_BY_TYPE.get(exercise_type, "pushups")


def _fields(data: ExerciseInput) -> tuple[float, float, float, float]:
    return (
        data.reps or 0,
        data.weight or 0,
        data.distance or 0,
        data.time_seconds or 0,
    )


def infer_exercise_type(data: ExerciseInput) -> Optional[ExerciseType]:
    """
    Priority (first match wins): distance or time -> endurance; weight and reps -> strength;
    reps without weight -> bodyweight; otherwise None.
    """
    reps, weight, distance, time_seconds = _fields(data)
    if distance > 0 or time_seconds > 0:
        return "endurance"
    if weight > 0 and reps > 0:
        return "strength"
    if reps > 0 and weight == 0:
        return "bodyweight"
    return None


def validate_workout_data(data: ExerciseInput) -> bool:
    exercise_type = infer_exercise_type(data)
    if exercise_type is None:
        return False
    reps, weight, distance, time_seconds = _fields(data)
    if exercise_type == "bodyweight":
        return reps >= MIN_REPS
    if exercise_type == "strength":
        return weight >= MIN_WEIGHT and reps >= MIN_REPS
    return distance >= MIN_DISTANCE_KM and time_seconds >= MIN_TIME_SECONDS


def validate_exercise_block(exercise: ExerciseBlock) -> Optional[ExerciseBlock]:
    """
    Same minimums as validate_workout_data, applied to a submitted block. Sets below the minimums
    are dropped; None when nothing countable is left.
    """
    if exercise.type == "endurance":
        data = exercise.endurance
        if (data.distance_km or 0) < MIN_DISTANCE_KM or data.time_sec < MIN_TIME_SECONDS:
            return None
        return exercise
    if exercise.type == "strength":
        sets = [s for s in exercise.sets if s.reps >= MIN_REPS and s.weight >= MIN_WEIGHT]
    else:
        sets = [s for s in exercise.sets if s.reps >= MIN_REPS]
    if not sets:
        return None
    if len(sets) == len(exercise.sets):
        return exercise
    return exercise.model_copy(update={"sets": sets})


def calculate_estimated_xp(data: ExerciseInput) -> int:
    """Cheap preview: 1 XP per rep, endurance distance*20 + minutes*2. Not the authoritative allocation."""
    exercise_type = infer_exercise_type(data)
    if exercise_type is None:
        return 0
    reps, _weight, distance, time_seconds = _fields(data)
    if exercise_type in ("bodyweight", "strength"):
        return int(reps)
    return round_half_up(distance * 20 + (time_seconds / 60) * 2)


def build_exercise_block(data: ExerciseInput, block_id: str | None = None) -> Optional[ExerciseBlock]:
    """Build the tagged exercise block once from a quick-log entry; None when the entry is invalid."""
    if not validate_workout_data(data):
        return None
    exercise_type = infer_exercise_type(data)
    name = (data.exercise_name or "").strip()
    extra = {"id": block_id} if block_id else {}
    if exercise_type == "endurance":
        return EnduranceExercise(
            name=name,
            endurance=EnduranceData(distance_km=data.distance, time_sec=data.time_seconds or 0),
            **extra,
        )
    if exercise_type == "strength":
        return StrengthExercise(
            name=name,
            sets=[StrengthSet(reps=data.reps or 0, weight=data.weight or 0)],
            **extra,
        )
    return BodyweightExercise(
        name=name,
        sets=[BodyweightSet(reps=data.reps or 0)],
        **extra,
    )
