from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from datetime import datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.schemas.journey import DayStatus, JourneyProgress
from app.services.clock import at_local_time, to_local, to_utc

logger = logging.getLogger(__name__)

JOURNEY_TOTAL_DAYS = 90
UNLOCK_TIME = time(0, 1)


def next_eligible_at(completed_at: datetime, tz: ZoneInfo | None) -> datetime:
    """12:01 AM local on the calendar day after ``completed_at``."""
    completed_local = to_local(completed_at, tz)
    return at_local_time(completed_local.date() + timedelta(days=1), UNLOCK_TIME, tz)


def is_day_unlocked(
    completed_days: Collection[int],
    day_number: int,
    now: datetime,
    completion_dates: Mapping[int, datetime] | None = None,
    *,
    tz: ZoneInfo | None = None,
    bypass: bool = False,
) -> bool:
    if bypass:
        return True

    if day_number == 1:
        return True

    previous = day_number - 1
    if previous not in completed_days:
        return False

    completed_at = (completion_dates or {}).get(previous)
    if completed_at is not None:
        return to_utc(now) >= next_eligible_at(completed_at, tz)

    # Legacy records without completion timestamps: only unlock once the
    # current local day has passed 12:01 AM.
    local_now = to_local(now, tz)
    return local_now >= at_local_time(local_now.date(), UNLOCK_TIME, tz)


def calculate_current_day(
    completed_days: Collection[int], total_days: int = JOURNEY_TOTAL_DAYS
) -> int:
    if not completed_days:
        return 1
    return min(max(completed_days) + 1, total_days)


def get_day_status(
    progress: JourneyProgress,
    day_number: int,
    now: datetime,
    *,
    tz: ZoneInfo | None = None,
    bypass: bool = False,
) -> DayStatus:
    completed = set(progress.completed_days)
    if day_number in completed:
        return "completed"
    unlocked = is_day_unlocked(
        completed,
        day_number,
        now,
        progress.completion_dates,
        tz=tz,
        bypass=bypass,
    )
    return "unlocked" if unlocked else "locked"


def mark_day_complete(
    progress: JourneyProgress,
    day_number: int,
    now: datetime,
    *,
    total_days: int = JOURNEY_TOTAL_DAYS,
) -> bool:
    if day_number < 1 or day_number > total_days:
        raise ValueError(f"day_number must be within 1..{total_days}")
    if day_number in progress.completed_days:
        return False

    progress.completed_days = sorted({*progress.completed_days, day_number})
    progress.completion_dates[day_number] = to_utc(now)
    progress.current_day = calculate_current_day(progress.completed_days, total_days)
    logger.debug(
        "Journey day completed",
        extra={"day_number": day_number, "current_day": progress.current_day},
    )
    return True


def parse_progress(raw: Any) -> JourneyProgress:
    if not isinstance(raw, dict):
        return JourneyProgress()
    try:
        progress = JourneyProgress.model_validate(raw)
    except ValidationError:
        logger.error("Stored journey progress is invalid; treating as empty")
        return JourneyProgress()

    # Keep completion_dates keyed only by completed days.
    completed = sorted(set(progress.completed_days))
    progress.completed_days = completed
    progress.completion_dates = {
        day: ts for day, ts in progress.completion_dates.items() if day in completed
    }
    return progress


def completed_on_local_day(
    progress: JourneyProgress,
    day_number: int,
    now: datetime,
    *,
    tz: ZoneInfo | None = None,
) -> bool:
    completed_at = progress.completion_dates.get(day_number)
    if completed_at is None:
        return False
    return to_local(completed_at, tz).date() == to_local(now, tz).date()
