"""Personal-record detection. Read-only against the store: computes what a workout would change."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .classify import skill_for_exercise
from .levels import level_from_performance
from .models import TIME_SKILL, ExerciseBlock, PotentialPR, PREvent, SkillName
from .storage import DocumentStore, StoreError

logger = logging.getLogger(__name__)


def get_best_performance(exercise: ExerciseBlock) -> Optional[float]:
    """
    Comparable scalar for PR purposes: max reps for bodyweight and strength (weight ignored),
    elapsed seconds for endurance. None when the type cannot be compared against the mapped skill
    (a strength or bodyweight block mapped to the time skill, an endurance block mapped to a rep skill).
    """
    skill = skill_for_exercise(exercise.name)
    if exercise.type == "bodyweight":
        if not exercise.sets or skill == TIME_SKILL:
            return None
        return max(s.reps for s in exercise.sets)
    if exercise.type == "strength":
        if not skill or skill == TIME_SKILL or not exercise.sets:
            return None
        return max(s.reps for s in exercise.sets)
    if exercise.type == "endurance":
        if skill and skill != TIME_SKILL:
            return None
        return exercise.endurance.time_sec
    return None


def is_pr(current_best: float, candidate: float, skill_id: str) -> bool:
    """Time skill: lower wins, and an unset best (0) is never beatable. Everything else: higher wins."""
    if skill_id == TIME_SKILL:
        return current_best > 0 and candidate < current_best
    return candidate > current_best


def level_preview(skill_id: SkillName, performance: float) -> int:
    return level_from_performance(skill_id, performance)


def detect_prs(store: DocumentStore, user_id: str, exercises: Sequence[ExerciseBlock]) -> list[PREvent]:
    """One PREvent per exercise that beats the stored best. Skips unmapped names, missing records
    and store failures; does not write anything."""
    events: list[PREvent] = []
    for exercise in exercises:
        skill_id = skill_for_exercise(exercise.name)
        if not skill_id:
            continue
        performance = get_best_performance(exercise)
        if performance is None or performance <= 0:
            continue
        try:
            skill = store.get_skill(user_id, skill_id)
        except StoreError as e:
            logger.error(f"Error checking PR for skill {skill_id} (user {user_id}): {e}")
            continue
        if skill is None:
            logger.warning(f"Skill {skill_id} not found for user {user_id}, skipping PR check")
            continue
        if not is_pr(skill.best, performance, skill_id):
            continue
        events.append(PREvent(
            skill_id=skill_id,
            old_value=skill.best,
            new_value=performance,
            level_before=skill.level,
            level_after=level_from_performance(skill_id, performance),
            source_exercise_id=exercise.id,
        ))
    return events


def check_potential_pr(store: DocumentStore, user_id: str, exercise: ExerciseBlock) -> Optional[PotentialPR]:
    """Live feedback while logging: would this block be a PR, and how many levels would it add?"""
    skill_id = skill_for_exercise(exercise.name)
    if not skill_id:
        return None
    performance = get_best_performance(exercise)
    if performance is None or performance <= 0:
        return None
    try:
        skill = store.get_skill(user_id, skill_id)
    except StoreError as e:
        logger.error(f"Error checking potential PR for skill {skill_id} (user {user_id}): {e}")
        return None
    if skill is None or not is_pr(skill.best, performance, skill_id):
        return None
    return PotentialPR(
        is_pr=True,
        level_gain=level_from_performance(skill_id, performance) - skill.level,
        pr_value=performance,
    )
