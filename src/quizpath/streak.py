"""Daily study streak tracking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    last_study_date: datetime | None


def normalize_day(value: datetime | date) -> date:
    """Strip the time of day, keeping the calendar date of the value's own timezone."""
    if isinstance(value, datetime):
        return value.date()
    return value


def update_streak(
    last_study_date: datetime | None,
    today: datetime,
    current_streak: int,
    longest_streak: int,
) -> StreakUpdate:
    """Advance, hold, or reset a streak for a study action at ``today``.

    Same-day repeats hold the streak, the next calendar day extends it, and
    any longer gap restarts it at 1. A ``today`` earlier than the last study
    date is treated as clock skew and leaves everything untouched.
    """
    current = max(0, current_streak)
    longest = max(0, longest_streak)

    if last_study_date is None:
        current = 1
    else:
        days_diff = (normalize_day(today) - normalize_day(last_study_date)).days
        if days_diff < 0:
            logger.warning(
                "study date %s precedes last study date %s, streak unchanged",
                today.isoformat(),
                last_study_date.isoformat(),
            )
            return StreakUpdate(current, max(longest, current), last_study_date)
        if days_diff == 1:
            current += 1
        elif days_diff > 1:
            current = 1

    return StreakUpdate(current, max(longest, current), today)


__all__ = ["normalize_day", "StreakUpdate", "update_streak"]
