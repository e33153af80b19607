"""Workout XP: per-skill allocation (drives skill progress) and the coarser session summary.

The two use different constants. The allocation feeds each skill's XP bar;
the summary is what the workout toast shows.
"""

from __future__ import annotations

from typing import Sequence

from .classify import skill_for_exercise
from .levels import pr_bonus_xp, round_half_up
from .models import SKILLS, TIME_SKILL, ExerciseBlock, PREvent, SkillName, XPBreakdown

# Allocation constants (per-skill progress)
ALLOC_XP_PER_KM = 20
ALLOC_XP_PER_MINUTE = 2

# Summary constants (workout toast)
SUMMARY_WEIGHT_DIVISOR = 10
SUMMARY_XP_PER_BODYWEIGHT_REP = 2
SUMMARY_XP_PER_KM = 50
SUMMARY_XP_PER_MINUTE = 5


def _exercise_allocation(exercise: ExerciseBlock, skill_id: SkillName) -> float:
    """XP one block contributes to its skill; 0 when the block type does not fit the skill."""
    if exercise.type in ("strength", "bodyweight"):
        if skill_id == TIME_SKILL:
            return 0
        return sum(s.reps for s in exercise.sets)
    if exercise.type == "endurance":
        if skill_id != TIME_SKILL:
            return 0
        data = exercise.endurance
        return (data.distance_km or 0) * ALLOC_XP_PER_KM + (data.time_sec / 60) * ALLOC_XP_PER_MINUTE
    return 0


def allocate_workout_xp(exercises: Sequence[ExerciseBlock]) -> dict[SkillName, int]:
    """Skill -> XP delta. Every skill is present; unmapped exercise names contribute nothing."""
    skill_xp: dict[SkillName, int] = {skill_id: 0 for skill_id in SKILLS}
    for exercise in exercises:
        skill_id = skill_for_exercise(exercise.name)
        if not skill_id:
            continue
        skill_xp[skill_id] += round_half_up(_exercise_allocation(exercise, skill_id))
    return skill_xp


def calculate_workout_xp(
    exercises: Sequence[ExerciseBlock],
    pr_events: Sequence[PREvent] = (),
) -> XPBreakdown:
    """
    Session summary. Strength: reps * weight / 10 per set. Bodyweight: reps * 2.
    Endurance: km * 50 + minutes * 5. PR bonus: 100 per level gained. Fields rounded individually,
    total rounded from the unrounded parts.
    """
    strength_xp = 0.0
    bodyweight_xp = 0.0
    endurance_xp = 0.0
    for exercise in exercises:
        if exercise.type == "strength":
            strength_xp += sum(s.reps * s.weight / SUMMARY_WEIGHT_DIVISOR for s in exercise.sets)
        elif exercise.type == "bodyweight":
            bodyweight_xp += sum(s.reps * SUMMARY_XP_PER_BODYWEIGHT_REP for s in exercise.sets)
        elif exercise.type == "endurance":
            data = exercise.endurance
            endurance_xp += (data.distance_km or 0) * SUMMARY_XP_PER_KM + (data.time_sec / 60) * SUMMARY_XP_PER_MINUTE
    bonus = sum(pr_bonus_xp(e.level_before, e.level_after) for e in pr_events)
    total = strength_xp + bodyweight_xp + endurance_xp + bonus
    return XPBreakdown(
        strength_xp=round_half_up(strength_xp),
        bodyweight_xp=round_half_up(bodyweight_xp),
        endurance_xp=round_half_up(endurance_xp),
        pr_bonus_xp=bonus,
        total_xp=round_half_up(total),
    )
