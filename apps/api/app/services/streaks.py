from __future__ import annotations

from datetime import date as Date
from datetime import timedelta
from typing import Any

from app.schemas.engagement import StreakData


def _coerce_date(value: Any) -> Date | None:
    if isinstance(value, Date):
        return value
    if isinstance(value, str):
        try:
            return Date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def compute_streaks(*, log_dates: list[Date], anchor_date: Date) -> tuple[int, int]:
    if not log_dates:
        return 0, 0

    unique_dates = sorted(set(log_dates))
    date_set = set(unique_dates)

    current = 0
    cursor = anchor_date
    while cursor in date_set:
        current += 1
        cursor -= timedelta(days=1)

    longest = 0
    run = 0
    prev: Date | None = None
    for day in unique_dates:
        if prev is None or day == prev + timedelta(days=1):
            run += 1
        else:
            run = 1
        prev = day
        if run > longest:
            longest = run

    return current, longest


def streak_from_dates(*, activity_dates: list[Date], today: Date) -> StreakData:
    """Streak still alive only when the latest activity is today or yesterday."""
    if not activity_dates:
        return StreakData()
    last = max(activity_dates)
    if last not in (today, today - timedelta(days=1)):
        _, longest = compute_streaks(log_dates=activity_dates, anchor_date=last)
        return StreakData(current_streak=0, longest_streak=longest, last_activity_date=last.isoformat())
    current, longest = compute_streaks(log_dates=activity_dates, anchor_date=last)
    return StreakData(
        current_streak=current,
        longest_streak=max(current, longest),
        last_activity_date=last.isoformat(),
    )


def advance_streak(streak: StreakData, *, today: Date, active_today: bool) -> StreakData:
    if not active_today:
        return streak

    last = _coerce_date(streak.last_activity_date) if streak.last_activity_date else None
    if last == today:
        current = streak.current_streak
    elif last == today - timedelta(days=1):
        current = streak.current_streak + 1
    else:
        current = 1

    return StreakData(
        current_streak=current,
        longest_streak=max(streak.longest_streak, current),
        last_activity_date=today.isoformat(),
    )
