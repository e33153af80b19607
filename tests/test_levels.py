"""Level math: exact performance boundaries, XP curve, hybrid soft cap, overall level, display helpers."""

import pytest

from repquest.levels import (
    display_value,
    format_level_display,
    format_time,
    hybrid_level,
    improvement_text,
    level_from_performance,
    level_from_xp,
    level_progress,
    next_level_target,
    overall_level,
    parse_time,
    pr_bonus_xp,
    xp_for_level,
    xp_to_next_level,
)
from repquest.models import SKILLS


@pytest.mark.parametrize("skill", ["pushups", "situps", "squats"])
@pytest.mark.parametrize("best,expected", [(0, 0), (1, 1), (12.7, 12), (99, 99), (150, 99)])
def test_rep_skill_level_is_floor_of_best(skill: str, best: float, expected: int) -> None:
    """Rep skills: level = floor(best), clamped to 0..99."""
    assert level_from_performance(skill, best) == expected


@pytest.mark.parametrize("best,expected", [(0, 0), (1, 5), (19, 95), (20, 99), (3.5, 17)])
def test_pullups_level_multiplier(best: float, expected: int) -> None:
    """Pull-ups: level = floor(best * 5); 20 reps would be 100 and clamps to 99."""
    assert level_from_performance("pullups", best) == expected


@pytest.mark.parametrize(
    "seconds,expected",
    [(3600, 0), (4000, 0), (3580, 0), (3600 - 21, 1), (3600 - 42, 2), (1500, 99), (0, 99)],
)
def test_time_skill_level(seconds: float, expected: int) -> None:
    """5k: every 21 s under 60:00 is a level; slower than 60:00 is 0, very fast clamps to 99."""
    assert level_from_performance("5k", seconds) == expected


def test_unknown_skill_is_level_zero() -> None:
    assert level_from_performance("bench", 300) == 0


@pytest.mark.parametrize("skill", SKILLS)
def test_next_level_target_round_trip_is_monotonic(skill: str) -> None:
    """Feeding next_level_target back into the formula always reaches a higher level."""
    samples = [0, 1, 3, 7, 12, 19, 40, 98] if skill != "5k" else [3600, 3500, 3000, 2500, 1800, 1600]
    for value in samples:
        level = level_from_performance(skill, value)
        if level >= 99:
            continue
        target = next_level_target(skill, level)
        assert level_from_performance(skill, target) > level


def test_next_level_target_values() -> None:
    assert next_level_target("pushups", 20) == 21
    assert next_level_target("pullups", 15) == 4  # ceil(16 / 5)
    assert next_level_target("5k", 0) == 3600 - 21
    assert next_level_target("pushups", 99) == 0
    assert next_level_target("5k", 99) == 0


def test_xp_for_level_arithmetic_series() -> None:
    """Level 1 costs 100, level 2 another 125, level 3 another 150."""
    assert xp_for_level(0) == 0
    assert xp_for_level(1) == 100
    assert xp_for_level(2) == 225
    assert xp_for_level(3) == 375
    assert xp_for_level(20) == 6750
    assert xp_for_level(150) == xp_for_level(99)


def test_xp_curve_strictly_increasing_and_invertible() -> None:
    for level in range(99):
        assert xp_for_level(level) < xp_for_level(level + 1)
    for level in range(100):
        assert level_from_xp(xp_for_level(level)) == level
    assert level_from_xp(xp_for_level(5) - 1) == 4
    assert level_from_xp(10**9) == 99


def test_xp_to_next_level_and_progress() -> None:
    assert xp_to_next_level(0) == 100
    assert xp_to_next_level(150) == 75
    assert xp_to_next_level(xp_for_level(99)) == 0
    assert level_progress(0) == 0.0
    assert level_progress(50) == 0.5
    assert level_progress(xp_for_level(99)) == 1.0


def test_hybrid_level_soft_cap() -> None:
    """pr_level 10: XP up to level 13 counts fully, beyond that at half rate."""
    assert hybrid_level(10, xp_for_level(13)) == 13
    capped = hybrid_level(10, xp_for_level(20))
    assert 13 <= capped < 20
    assert capped == 16  # 13 + (20 - 13) * 0.5, floored
    assert hybrid_level(10, xp_for_level(5)) == 5
    assert hybrid_level(0, xp_for_level(99)) == 51
    assert hybrid_level(99, 10**9) == 99


def test_pr_bonus_xp() -> None:
    assert pr_bonus_xp(20, 25) == 500
    assert pr_bonus_xp(25, 25) == 0
    assert pr_bonus_xp(25, 20) == 0


def test_overall_level_rounded_mean() -> None:
    assert overall_level([10, 20, 30, 40, 50]) == 30
    assert overall_level([1, 2]) == 2  # 1.5 rounds up
    assert overall_level([0, 0, 0, 1]) == 0
    assert overall_level([]) == 0


def test_time_format_and_parse() -> None:
    assert format_time(1530) == "25:30"
    assert format_time(65) == "1:05"
    assert parse_time("25:30") == 1530
    assert parse_time("abc") == 0
    assert parse_time("1:2:3") == 0
    assert parse_time("x:30") == 0


def test_improvement_text() -> None:
    assert improvement_text("pushups", 20, 25) == "+5 reps"
    assert improvement_text("pushups", 25, 20) == ""
    assert improvement_text("5k", 1500, 1435) == "-1:05"
    assert improvement_text("5k", 1500, 1460) == "-40s"
    assert improvement_text("5k", 1500, 1600) == ""


def test_format_level_display() -> None:
    assert format_level_display(0) == "Novice"
    assert format_level_display(5) == "L5"
    assert format_level_display(25) == "L25 🔥"
    assert format_level_display(60) == "L60 ⭐"
    assert format_level_display(99) == "L99 👑"


def test_display_value() -> None:
    assert display_value("5k", 1530) == "25:30"
    assert display_value("pushups", 25) == "25"
