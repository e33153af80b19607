"""Daily streak: calendar-day transitions and the once-per-day daily quest."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Optional, Union

from .models import DailyQuestResult
from .storage import DocumentStore, NotFoundError

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    # datetime is a subclass of date; reduce it to its calendar day
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(earlier: DateLike, later: DateLike) -> int:
    """Whole calendar days from earlier to later (local midnight to midnight, not elapsed hours)."""
    return (_as_date(later) - _as_date(earlier)).days


def calculate_streak(last_streak_date: Optional[DateLike], streak_count: int, today: DateLike) -> int:
    """New streak count: first ever -> 1, same day -> unchanged, next day -> +1, any gap -> 1."""
    if last_streak_date is None:
        return 1
    gap = days_between(last_streak_date, today)
    if gap == 0:
        return streak_count
    if gap == 1:
        return streak_count + 1
    return 1


def should_increment_streak(last_streak_date: Optional[DateLike], today: DateLike) -> bool:
    if last_streak_date is None:
        return True
    return days_between(last_streak_date, today) >= 1


def streak_status(streak_count: int, last_streak_date: Optional[DateLike], today: DateLike) -> str:
    if streak_count == 0 or last_streak_date is None:
        return "Start your streak!"
    plural = "" if streak_count == 1 else "s"
    gap = days_between(last_streak_date, today)
    if gap == 0:
        return f"{streak_count} day{plural} - Keep it up!"
    if gap == 1:
        return f"{streak_count} day{plural} - Don't break it!"
    return "Streak broken - Start fresh!"


def flame_height(streak_count: int) -> int:
    """0..100 on a log scale: 1 day = 20, 100+ days = 100."""
    if streak_count <= 0:
        return 0
    height = min(100.0, 20 + (math.log(streak_count) / math.log(100)) * 80)
    return int(math.floor(height + 0.5))


def format_streak_display(streak_count: int) -> str:
    if streak_count == 0:
        return "0"
    if streak_count == 1:
        return "1 Day"
    return f"{streak_count} Days"


def log_daily_quest(store: DocumentStore, user_id: str, today: Optional[date] = None) -> DailyQuestResult:
    """Record today's qualifying activity and advance the streak. At most one change per calendar day."""
    if today is None:
        today = date.today()
    user = store.get_user(user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")

    store.record_daily_quest(user_id, today)

    if user.last_streak_date is not None and days_between(user.last_streak_date, today) == 0:
        return DailyQuestResult(streak_count=user.streak_count, updated=False)

    new_count = calculate_streak(user.last_streak_date, user.streak_count, today)
    store.update_user(user_id, {"streak_count": new_count, "last_streak_date": today})
    logger.info(f"Streak for user {user_id}: {user.streak_count} -> {new_count} ({today.isoformat()})")
    return DailyQuestResult(streak_count=new_count, updated=True)
