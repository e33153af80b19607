"""Progression applier: writes PRs and XP back to skill records, keeps overall level and badges current.

Ordering matters: PRs are applied before the XP allocation, which reads the post-PR record,
and the overall level is recomputed last. Each skill write is a compare-and-swap on the record
version, retried a few times; a failure on one skill is logged and does not stop the others.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence

from .classify import validate_exercise_block
from .levels import hybrid_level, level_from_performance, overall_level, pr_bonus_xp, xp_for_level
from .models import (
    MILESTONE_LEVELS,
    SKILLS,
    Badge,
    ExerciseBlock,
    PersonalRecordEntry,
    PREvent,
    SkillName,
    SkillRecord,
    WorkoutSession,
)
from .pr import detect_prs, is_pr
from .storage import DocumentStore, StoreError, WriteConflictError
from .streak import log_daily_quest
from .xp import allocate_workout_xp, calculate_workout_xp

logger = logging.getLogger(__name__)

DEFAULT_MAX_WRITE_RETRIES = 3

# Given the freshly read record, return the fields to write, or None to leave it alone
SkillUpdateFn = Callable[[SkillRecord], Optional[dict[str, Any]]]


def max_write_retries() -> int:
    raw = os.environ.get("REPQUEST_MAX_WRITE_RETRIES", "").strip()
    try:
        return max(1, int(raw)) if raw else DEFAULT_MAX_WRITE_RETRIES
    except ValueError:
        return DEFAULT_MAX_WRITE_RETRIES


def update_skill_checked(
    store: DocumentStore,
    user_id: str,
    skill_id: SkillName,
    compute: SkillUpdateFn,
    retries: Optional[int] = None,
) -> Optional[tuple[SkillRecord, dict[str, Any]]]:
    """
    Read-modify-write one skill with optimistic concurrency. Returns (record as read, fields written),
    or None when the record is missing or compute() declined. Raises WriteConflictError once the
    retry budget is spent; other StoreErrors propagate.
    """
    attempts = retries if retries is not None else max_write_retries()
    for attempt in range(1, attempts + 1):
        skill = store.get_skill(user_id, skill_id)
        if skill is None:
            logger.warning(f"Skill {skill_id} not found for user {user_id}, skipping")
            return None
        fields = compute(skill)
        if fields is None:
            return None
        try:
            store.update_skill(user_id, skill_id, fields, expected_version=skill.version)
            return skill, fields
        except WriteConflictError:
            logger.warning(
                f"Write conflict on skill {skill_id} for user {user_id} (attempt {attempt}/{attempts})"
            )
    raise WriteConflictError(f"skill {skill_id} for user {user_id}: gave up after {attempts} attempts")


def milestone_label(skill_id: str, level: int) -> str:
    if level == 99:
        return f"{skill_id.upper()} L99 Golden"
    return f"{skill_id.upper()} L{level}"


def unlock_milestone_badges(
    store: DocumentStore, user_id: str, skill_id: SkillName, old_level: int, new_level: int
) -> list[Badge]:
    """Unlock every milestone crossed going from old_level up to new_level. Already-held badges are skipped."""
    unlocked: list[Badge] = []
    for milestone in MILESTONE_LEVELS:
        if old_level < milestone <= new_level:
            badge = store.unlock_badge(user_id, Badge(
                type="milestone",
                label=milestone_label(skill_id, milestone),
                skill_id=skill_id,
                level=milestone,
            ))
            if badge is not None:
                logger.info(f"Badge unlocked for user {user_id}: {badge.label}")
                unlocked.append(badge)
    return unlocked


def _after_level_change(store: DocumentStore, user_id: str, skill_id: SkillName, old: int, new: int) -> None:
    try:
        unlock_milestone_badges(store, user_id, skill_id, old, new)
    except StoreError as e:
        logger.error(f"Error unlocking badges for skill {skill_id} (user {user_id}): {e}")


def apply_prs(store: DocumentStore, user_id: str, pr_events: Sequence[PREvent]) -> list[PREvent]:
    """Write each PR: new best, PR bonus XP, hybrid level. Returns the events that were applied."""
    applied: list[PREvent] = []
    for pr in pr_events:
        def compute(skill: SkillRecord, pr: PREvent = pr) -> Optional[dict[str, Any]]:
            # An earlier block in the same workout may already have moved the best past this one
            if not is_pr(skill.best, pr.new_value, pr.skill_id):
                return None
            new_xp = skill.xp + pr_bonus_xp(pr.level_before, pr.level_after)
            return {
                "best": pr.new_value,
                "level": hybrid_level(pr.level_after, new_xp),
                "xp": new_xp,
            }

        try:
            result = update_skill_checked(store, user_id, pr.skill_id, compute)
        except StoreError as e:
            logger.error(f"Error updating skill {pr.skill_id} (user {user_id}): {e}")
            continue
        if result is None:
            continue
        before, fields = result
        logger.info(
            f"PR achieved for {pr.skill_id} (user {user_id}): {before.best:g} -> {pr.new_value:g} "
            f"(level {pr.level_before} -> {pr.level_after}); XP {before.xp} -> {fields['xp']}, "
            f"displayed level {fields['level']}"
        )
        applied.append(pr)
        try:
            store.log_personal_record(user_id, PersonalRecordEntry(
                skill_id=pr.skill_id,
                value=pr.new_value,
                delta=pr.new_value - before.best,
            ))
        except StoreError as e:
            logger.error(f"Error logging PR for skill {pr.skill_id} (user {user_id}): {e}")
        _after_level_change(store, user_id, pr.skill_id, before.level, fields["level"])
    return applied


def apply_xp_to_skills(store: DocumentStore, user_id: str, skill_xp: Mapping[SkillName, int]) -> None:
    """Add each nonzero XP delta and recompute the displayed level from the stored best."""
    for skill_id, xp_gain in skill_xp.items():
        if xp_gain <= 0:
            continue

        def compute(skill: SkillRecord, skill_id: SkillName = skill_id, xp_gain: int = xp_gain) -> dict[str, Any]:
            new_xp = skill.xp + xp_gain
            return {
                "xp": new_xp,
                "level": hybrid_level(level_from_performance(skill_id, skill.best), new_xp),
            }

        try:
            result = update_skill_checked(store, user_id, skill_id, compute)
        except StoreError as e:
            logger.error(f"Error applying XP to skill {skill_id} (user {user_id}): {e}")
            continue
        if result is None:
            continue
        before, fields = result
        logger.info(
            f"Applied {xp_gain} XP to {skill_id} (user {user_id}): {before.xp} -> {fields['xp']} "
            f"(level {before.level} -> {fields['level']})"
        )
        _after_level_change(store, user_id, skill_id, before.level, fields["level"])


def calculate_and_get_overall_level(store: DocumentStore, user_id: str) -> int:
    """Recompute the account level as the rounded mean of all skill levels and persist it."""
    skills = store.get_all_skills(user_id)
    level = overall_level(s.level for s in skills)
    store.update_user(user_id, {"overall_level": level})
    return level


def _refresh_overall_level(store: DocumentStore, user_id: str) -> None:
    try:
        level = calculate_and_get_overall_level(store, user_id)
        logger.info(f"Updated overall level for user {user_id} to {level}")
    except StoreError as e:
        logger.error(f"Error updating overall level for user {user_id}: {e}")


def detect_prs_and_apply(store: DocumentStore, user_id: str, exercises: Sequence[ExerciseBlock]) -> list[PREvent]:
    """Detect PRs, apply them, apply the per-skill XP allocation, refresh the overall level.
    Returns only the PR events that were written."""
    pr_events = detect_prs(store, user_id, exercises)
    applied = apply_prs(store, user_id, pr_events) if pr_events else []
    apply_xp_to_skills(store, user_id, allocate_workout_xp(exercises))
    _refresh_overall_level(store, user_id)
    return applied


def submit_workout(
    store: DocumentStore,
    user_id: str,
    exercises: Sequence[ExerciseBlock],
    today: Optional[date] = None,
) -> WorkoutSession:
    """
    Full submission: progression, session summary, session write, daily streak.
    Blocks below the classifier minimums are left out of everything, including the saved session.
    Per-skill failures are absorbed and the summary only counts PRs that were written;
    a failed session write raises (the caller should offer a retry).
    """
    if today is None:
        today = date.today()
    valid: list[ExerciseBlock] = []
    for exercise in exercises:
        block = validate_exercise_block(exercise)
        if block is None:
            logger.warning(f"Skipping invalid exercise {exercise.name!r} ({exercise.type}) for user {user_id}")
            continue
        valid.append(block)
    exercises = valid
    pr_events = detect_prs_and_apply(store, user_id, exercises)
    breakdown = calculate_workout_xp(exercises, pr_events)
    session = WorkoutSession(
        workout_date=today,
        exercises=list(exercises),
        total_xp=breakdown.total_xp,
        prs_detected=len(pr_events),
        levels_gained=sum(max(0, e.level_after - e.level_before) for e in pr_events),
        xp_breakdown=breakdown,
        pr_events=pr_events,
    )
    store.save_workout_session(user_id, session)
    try:
        log_daily_quest(store, user_id, today)
    except StoreError as e:
        logger.error(f"Error updating streak for user {user_id}: {e}")
    return session


def initialize_skill_xp(store: DocumentStore, user_id: str, skill_id: SkillName) -> Optional[int]:
    """Backfill: give a record that has levels but no XP the XP its level implies. Returns the XP set."""
    def compute(skill: SkillRecord) -> Optional[dict[str, Any]]:
        if skill.xp > 0 or skill.level == 0:
            return None
        return {"xp": xp_for_level(skill.level)}

    try:
        result = update_skill_checked(store, user_id, skill_id, compute)
    except StoreError as e:
        logger.error(f"Error initializing XP for skill {skill_id} (user {user_id}): {e}")
        return None
    if result is None:
        return None
    _, fields = result
    logger.info(f"Initialized {skill_id} XP to {fields['xp']} for user {user_id}")
    return fields["xp"]


def backfill_all_skills_xp(store: DocumentStore, user_id: str) -> dict[SkillName, int]:
    backfilled: dict[SkillName, int] = {}
    for skill_id in SKILLS:
        xp = initialize_skill_xp(store, user_id, skill_id)
        if xp is not None:
            backfilled[skill_id] = xp
    return backfilled
