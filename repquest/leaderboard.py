"""Leaderboard ordering over account summaries."""

from __future__ import annotations

from typing import Sequence

from .models import LeaderboardEntry


def sort_by_overall_level(entries: Sequence[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Overall level desc, then streak desc, then badge count desc, then most recently updated first."""
    # Stable sorts applied from the least to the most significant key
    ordered = sorted(entries, key=lambda e: e.last_updated or "", reverse=True)
    return sorted(ordered, key=lambda e: (-e.overall_level, -e.streak_count, -e.total_badges))


def get_user_rank(entries: Sequence[LeaderboardEntry], user_id: str) -> int:
    """1-based rank, -1 when the user is not on the board."""
    for i, entry in enumerate(sort_by_overall_level(entries)):
        if entry.user_id == user_id:
            return i + 1
    return -1


def get_top_users(entries: Sequence[LeaderboardEntry], count: int = 10) -> list[LeaderboardEntry]:
    return sort_by_overall_level(entries)[: max(0, count)]
