"""Deterministic level math: performance -> level, XP curve, hybrid displayed level, PR bonus."""

from __future__ import annotations

import math
from typing import Iterable

from .models import TIME_SKILL, TIME_SKILL_START_SECONDS

MAX_LEVEL = 99

# Skills whose level is simply the best rep count
REP_SKILLS = frozenset({"pushups", "situps", "squats"})
# Harder bodyweight movement: fewer reps expected, each rep is worth more levels
MULTIPLIER_SKILLS = {"pullups": 5}
# Every 21 s faster than 60:00 is one level
SECONDS_PER_TIME_LEVEL = 21

# XP curve: level 1 costs XP_BASE, each further level costs XP_INCREMENT more than the previous one
XP_BASE = 100
XP_INCREMENT = 25

SOFT_CAP_BUFFER = 3
OVERCAP_PENALTY = 0.5

PR_BONUS_XP_PER_LEVEL = 100


def clamp_level(value: float) -> int:
    return max(0, min(MAX_LEVEL, int(value)))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


# --- Performance -> level ---

def level_from_performance(skill_id: str, best: float) -> int:
    """
    Level 0..99 from the best performance.
    Rep skills: floor(best). Pull-ups: floor(best * 5). 5k: floor((3600 - seconds) / 21).
    Unknown skills are level 0.
    """
    if skill_id in REP_SKILLS:
        return clamp_level(math.floor(best))
    if skill_id in MULTIPLIER_SKILLS:
        return clamp_level(math.floor(best * MULTIPLIER_SKILLS[skill_id]))
    if skill_id == TIME_SKILL:
        return clamp_level(math.floor((TIME_SKILL_START_SECONDS - best) / SECONDS_PER_TIME_LEVEL))
    return 0


def next_level_target(skill_id: str, current_level: int) -> float:
    """Performance needed for current_level + 1; 0 once the max level is reached."""
    if current_level >= MAX_LEVEL:
        return 0
    next_level = current_level + 1
    if skill_id in REP_SKILLS:
        return next_level
    if skill_id in MULTIPLIER_SKILLS:
        return math.ceil(next_level / MULTIPLIER_SKILLS[skill_id])
    if skill_id == TIME_SKILL:
        return TIME_SKILL_START_SECONDS - next_level * SECONDS_PER_TIME_LEVEL
    return 0


# --- XP curve ---

def xp_for_level(level: int) -> int:
    """Cumulative XP required to reach `level` (arithmetic series, level clamped to 0..99)."""
    level = max(0, min(MAX_LEVEL, level))
    first = XP_BASE
    last = XP_BASE + (level - 1) * XP_INCREMENT
    return level * (first + last) // 2


def level_from_xp(total_xp: float) -> int:
    """Largest level whose required XP is <= total_xp (binary search; xp_for_level is strictly increasing)."""
    lo, hi = 0, MAX_LEVEL
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if xp_for_level(mid) <= total_xp:
            lo = mid
        else:
            hi = mid - 1
    return lo


def xp_to_next_level(total_xp: float) -> int:
    level = level_from_xp(total_xp)
    if level >= MAX_LEVEL:
        return 0
    return int(math.ceil(xp_for_level(level + 1) - total_xp))


def level_progress(total_xp: float) -> float:
    """Fraction 0..1 of the way from the current XP level to the next."""
    level = level_from_xp(total_xp)
    if level >= MAX_LEVEL:
        return 1.0
    floor_xp = xp_for_level(level)
    span = xp_for_level(level + 1) - floor_xp
    return max(0.0, min(1.0, (total_xp - floor_xp) / span))


def hybrid_level(pr_level: int, current_xp: float) -> int:
    """
    Displayed level. XP drives the level up to pr_level + SOFT_CAP_BUFFER; past that soft cap
    each XP level only counts OVERCAP_PENALTY of a level, so grinding cannot outrun real PRs.
    """
    xp_level = level_from_xp(current_xp)
    soft_cap = pr_level + SOFT_CAP_BUFFER
    if xp_level <= soft_cap:
        return clamp_level(xp_level)
    return clamp_level(math.floor(soft_cap + (xp_level - soft_cap) * OVERCAP_PENALTY))


def pr_bonus_xp(level_before: int, level_after: int) -> int:
    return max(0, level_after - level_before) * PR_BONUS_XP_PER_LEVEL


def overall_level(levels: Iterable[int]) -> int:
    """Rounded mean of skill levels; 0 when there are none."""
    values = list(levels)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


# --- Display helpers ---

def format_time(seconds: float) -> str:
    """Seconds -> M:SS."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def parse_time(value: str) -> int:
    """M:SS -> seconds; 0 when the string is not in that shape."""
    parts = (value or "").strip().split(":")
    if len(parts) != 2:
        return 0
    try:
        minutes, secs = int(parts[0]), int(parts[1])
    except ValueError:
        return 0
    return minutes * 60 + secs


def display_value(skill_id: str, value: float) -> str:
    if skill_id == TIME_SKILL:
        return format_time(value)
    return f"{value:g}"


def improvement_text(skill_id: str, old_value: float, new_value: float) -> str:
    """'+5 reps' for rep skills, '-1:05' / '-40s' for the time skill; empty when there is no gain."""
    if skill_id == TIME_SKILL:
        gain = old_value - new_value
        if gain <= 0:
            return ""
        minutes, secs = divmod(int(gain), 60)
        if minutes > 0:
            return f"-{minutes}:{secs:02d}"
        return f"-{secs}s"
    gain = new_value - old_value
    if gain <= 0:
        return ""
    return f"+{gain:g} reps"


def format_level_display(level: int) -> str:
    if level == 0:
        return "Novice"
    if level >= 90:
        return f"L{level} 👑"
    if level >= 50:
        return f"L{level} ⭐"
    if level >= 20:
        return f"L{level} 🔥"
    return f"L{level}"
