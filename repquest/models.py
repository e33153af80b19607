"""Pydantic models for RepQuest: skill/user records, exercise blocks, PR events, tool inputs/outputs."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

SkillName = Literal["pushups", "situps", "squats", "pullups", "5k"]
ExerciseType = Literal["strength", "bodyweight", "endurance"]

SKILLS: tuple[SkillName, ...] = ("pushups", "situps", "squats", "pullups", "5k")
TIME_SKILL: SkillName = "5k"
TIME_SKILL_START_SECONDS = 3600  # 60:00 is level 0

MILESTONE_LEVELS: tuple[int, ...] = (10, 20, 30, 40, 50, 60, 70, 80, 90, 99)

SKILL_DISPLAY_NAMES: dict[str, str] = {
    "pushups": "Push-ups",
    "situps": "Sit-ups",
    "squats": "Squats",
    "pullups": "Pull-ups",
    "5k": "5K Run",
}


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# --- Stored records ---

class SkillRecord(BaseModel):
    id: SkillName
    best: float = 0  # reps, or elapsed seconds for the time skill
    level: int = Field(default=0, ge=0, le=99)
    xp: int = Field(default=0, ge=0)
    version: int = 0  # bumped on every write; used for compare-and-swap
    last_updated: Optional[str] = None

    @classmethod
    def initial(cls, skill_id: SkillName) -> "SkillRecord":
        """Fresh record for a new account; the time skill starts at the worst time."""
        best = TIME_SKILL_START_SECONDS if skill_id == TIME_SKILL else 0
        return cls(id=skill_id, best=best, level=0, xp=0)


class UserRecord(BaseModel):
    user_id: str
    display_name: str = ""
    overall_level: int = 0
    streak_count: int = 0
    last_streak_date: Optional[date] = None
    created_at: Optional[str] = None


class PersonalRecordEntry(BaseModel):
    """Audit row written whenever a PR is applied."""
    id: Optional[int] = None
    skill_id: SkillName
    value: float
    delta: float  # improvement over the previous best (negative seconds for the time skill)
    created_at: Optional[str] = None


class Badge(BaseModel):
    id: Optional[int] = None
    type: Literal["milestone", "season"] = "milestone"
    label: str
    skill_id: Optional[SkillName] = None
    level: Optional[int] = None
    unlocked_at: Optional[str] = None


# --- Exercise blocks (tagged by `type`) ---

class StrengthSet(BaseModel):
    reps: int = Field(ge=0)
    weight: float = Field(ge=0)
    rpe: Optional[float] = None


class BodyweightSet(BaseModel):
    reps: int = Field(ge=0)
    rpe: Optional[float] = None


class EnduranceData(BaseModel):
    distance_km: Optional[float] = Field(default=None, ge=0)
    time_sec: float = Field(ge=0)
    raw_input: Optional[str] = None  # what the user typed, e.g. "25:30"


class StrengthExercise(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: _generate_id("ex"))
    type: Literal["strength"] = "strength"
    name: str
    sets: list[StrengthSet] = Field(default_factory=list)


class BodyweightExercise(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: _generate_id("ex"))
    type: Literal["bodyweight"] = "bodyweight"
    name: str
    sets: list[BodyweightSet] = Field(default_factory=list)


class EnduranceExercise(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: _generate_id("ex"))
    type: Literal["endurance"] = "endurance"
    name: str
    endurance: EnduranceData


ExerciseBlock = Annotated[
    Union[StrengthExercise, BodyweightExercise, EnduranceExercise],
    Field(discriminator="type"),
]


class ExerciseInput(BaseModel):
    """Flat quick-log form; the classifier infers the type from which fields are set."""
    exercise_name: str = ""
    reps: Optional[int] = None
    weight: Optional[float] = None
    distance: Optional[float] = None  # km
    time_seconds: Optional[float] = None


# --- Progression results ---

class PREvent(BaseModel):
    skill_id: SkillName
    old_value: float
    new_value: float
    level_before: int
    level_after: int
    source_exercise_id: str


class PotentialPR(BaseModel):
    """Live preview of what logging an exercise would do; nothing is written."""
    is_pr: bool
    level_gain: int
    pr_value: float


class XPBreakdown(BaseModel):
    strength_xp: int = 0
    bodyweight_xp: int = 0
    endurance_xp: int = 0
    pr_bonus_xp: int = 0
    total_xp: int = 0


class WorkoutSession(BaseModel):
    """Write-once summary of one submission."""
    id: str = Field(default_factory=lambda: _generate_id("workout"))
    workout_date: date
    exercises: list[ExerciseBlock] = Field(default_factory=list)
    total_xp: int = 0
    prs_detected: int = 0
    levels_gained: int = 0
    xp_breakdown: XPBreakdown = Field(default_factory=XPBreakdown)
    pr_events: list[PREvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_summary(self) -> "WorkoutSession":
        if self.total_xp != self.xp_breakdown.total_xp:
            raise ValueError("total_xp must match xp_breakdown.total_xp")
        if self.prs_detected != len(self.pr_events):
            raise ValueError("prs_detected must match the number of pr_events")
        return self


class DailyQuestResult(BaseModel):
    streak_count: int
    updated: bool  # False on a same-day re-log


class LeaderboardEntry(BaseModel):
    user_id: str
    display_name: str = ""
    overall_level: int = 0
    streak_count: int = 0
    total_badges: int = 0
    last_updated: Optional[str] = None  # ISO timestamp; sorts lexicographically


# --- Tool inputs/outputs ---

class CreateUserInput(BaseModel):
    user_id: Optional[str] = None
    display_name: str = ""


class SubmitWorkoutInput(BaseModel):
    user_id: str
    exercises: list[ExerciseBlock] = Field(default_factory=list)
    date: Optional[str] = None  # YYYY-MM-DD; defaults to today


class PreviewExerciseInput(BaseModel):
    user_id: str
    exercise: ExerciseInput


class PreviewExerciseOutput(BaseModel):
    valid: bool
    exercise_type: Optional[ExerciseType] = None
    skill_id: Optional[SkillName] = None
    estimated_xp: int = 0
    potential_pr: Optional[PotentialPR] = None


class UserIdInput(BaseModel):
    user_id: str
    date: Optional[str] = None  # YYYY-MM-DD; defaults to today
