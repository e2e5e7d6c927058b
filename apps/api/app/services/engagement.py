from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from datetime import date, timedelta
from typing import Any
from uuid import uuid4
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.schemas.engagement import (
    ACTIVITY_TYPES,
    ActivityLogEntry,
    CalendarMark,
    DailyStats,
    StreakData,
    WellnessLevel,
)
from app.services.clock import Clock, date_key, local_date, parse_instant, utc_now
from app.services.journey_engine import parse_progress
from app.services.state_store import StateStore
from app.services.streaks import advance_streak, streak_from_dates

logger = logging.getLogger(__name__)

# One journey activity plus up to four tool uses.
DEFAULT_DAILY_QUOTA = 5
DEFAULT_LOG_LIMIT = 100


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_recovery_strength(actions_today: int, quota: int) -> int:
    if quota <= 0:
        return 0
    return max(0, min(100, round_half_up(100 * actions_today / quota)))


def classify_wellness(recovery_strength: int) -> WellnessLevel:
    if recovery_strength >= 100:
        return "Good"
    if recovery_strength >= 50:
        return "Fair"
    return "Needs Attention"


def recovery_strength_label(percentage: int) -> str:
    if percentage >= 80:
        return "Fuel in the Tank"
    if percentage >= 60:
        return "Your Momentum"
    return "Recovery Strength"


def recovery_strength_message(percentage: int) -> str:
    if percentage >= 80:
        return "You're building serious strength. Stay steady."
    if percentage >= 60:
        return "Good momentum. Keep pushing forward."
    if percentage >= 40:
        return "You're building strength. Stay steady."
    return "Every step forward counts. Keep going."


def empty_daily_stats(day: str) -> DailyStats:
    return DailyStats(date=day)


class EngagementTracker:
    """
    Daily stats, streak and activity log for one user.

    Every operation reads the user record from ``store``, mutates it and
    writes it back. A missing or unreadable record is not an error: reads
    fall back to defaults and writes are skipped.
    """

    def __init__(
        self,
        store: StateStore,
        user_key: str | None,
        *,
        clock: Clock = utc_now,
        tz: ZoneInfo | None = None,
        daily_quota: int = DEFAULT_DAILY_QUOTA,
        log_limit: int = DEFAULT_LOG_LIMIT,
    ) -> None:
        self._store = store
        self._user_key = user_key
        self._clock = clock
        self._tz = tz
        self._daily_quota = daily_quota
        self._log_limit = log_limit

    # -- record access ---------------------------------------------------

    def _load(self, operation: str) -> dict[str, Any] | None:
        if not self._user_key:
            logger.warning("No active user for engagement tracking", extra={"operation": operation})
            return None
        record = self._store.get(self._user_key)
        if record is None:
            logger.warning(
                "No stored record for user",
                extra={"operation": operation, "user_key": self._user_key},
            )
        return record

    def _save(self, record: dict[str, Any]) -> None:
        if not self._user_key:
            return
        record["last_access"] = self._clock().isoformat()
        self._store.set(self._user_key, record)

    def _today(self) -> date:
        return local_date(self._clock(), self._tz)

    def _today_key(self) -> str:
        return date_key(self._today())

    @staticmethod
    def _stats_for(record: dict[str, Any], day: str) -> DailyStats | None:
        raw = (record.get("daily_stats") or {}).get(day)
        if raw is None:
            return None
        try:
            return DailyStats.model_validate(raw)
        except ValidationError:
            logger.error("Stored daily stats are invalid", extra={"date": day})
            return None

    @staticmethod
    def _put_stats(record: dict[str, Any], stats: DailyStats) -> None:
        daily = dict(record.get("daily_stats") or {})
        daily[stats.date] = stats.model_dump(mode="json")
        record["daily_stats"] = daily

    @staticmethod
    def _streak_for(record: dict[str, Any]) -> StreakData:
        raw = record.get("streak_data")
        if not isinstance(raw, dict):
            return StreakData()
        try:
            return StreakData.model_validate(raw)
        except ValidationError:
            logger.error("Stored streak data is invalid")
            return StreakData()

    # -- operations ------------------------------------------------------

    def log_activity(
        self,
        action: str,
        type: str = "general",
        details: str | None = None,
    ) -> bool:
        if type not in ACTIVITY_TYPES:
            raise ValueError(f"Unknown activity type: {type}")

        record = self._load("log_activity")
        if record is None:
            return False

        now = self._clock()
        entry = ActivityLogEntry(
            id=uuid4().hex,
            action=action,
            timestamp=now.isoformat(),
            type=type,  # type: ignore[arg-type]
            details=details,
        )
        log = [entry.model_dump(mode="json")] + list(record.get("activity_log") or [])
        record["activity_log"] = log[: self._log_limit]

        today = self._today_key()
        stats = self._stats_for(record, today) or empty_daily_stats(today)
        stats.actions_today += 1
        if type == "journey":
            stats.journey_activities_completed += 1
        elif type == "tool":
            stats.tools_used_today += 1
        self._put_stats(record, stats)
        self._save(record)

        self.update_recovery_strength()
        self.update_streak()

        logger.debug(
            "Activity logged",
            extra={"action": action, "type": type, "actions_today": stats.actions_today},
        )
        return True

    def update_recovery_strength(self) -> DailyStats | None:
        record = self._load("update_recovery_strength")
        if record is None:
            return None

        today = self._today_key()
        stats = self._stats_for(record, today)
        if stats is None:
            return None

        stats.recovery_strength = compute_recovery_strength(stats.actions_today, self._daily_quota)
        stats.wellness_level = classify_wellness(stats.recovery_strength)
        self._put_stats(record, stats)
        self._save(record)
        return stats

    def update_streak(self) -> StreakData:
        record = self._load("update_streak")
        if record is None:
            return StreakData()

        today = self._today()
        stats = self._stats_for(record, date_key(today))
        active_today = stats is not None and stats.actions_today > 0
        streak = advance_streak(self._streak_for(record), today=today, active_today=active_today)
        if active_today:
            record["streak_data"] = streak.model_dump(mode="json")
            self._save(record)
        return streak

    def get_todays_stats(self) -> DailyStats:
        today = self._today_key()
        record = self._load("get_todays_stats")
        if record is None:
            return empty_daily_stats(today)
        return self._stats_for(record, today) or empty_daily_stats(today)

    def get_streak_data(self) -> StreakData:
        record = self._load("get_streak_data")
        if record is None:
            return StreakData()
        return self._streak_for(record)

    def get_activity_log(self, limit: int | None = None) -> list[ActivityLogEntry]:
        record = self._load("get_activity_log")
        if record is None:
            return []
        entries: list[ActivityLogEntry] = []
        for raw in record.get("activity_log") or []:
            try:
                entries.append(ActivityLogEntry.model_validate(raw))
            except ValidationError:
                continue
        return entries[:limit] if limit is not None else entries

    def iter_calendar_days(self, months_back: int = 2) -> Iterator[tuple[str, CalendarMark]]:
        record = self._load("get_calendar_data")
        if record is None:
            return

        now = self._clock()
        today = local_date(now, self._tz)
        created_at = parse_instant(record.get("created_at")) or now
        created_day = local_date(created_at, self._tz)

        progress = parse_progress(record.get("journey_progress"))
        journey_days = {
            date_key(local_date(ts, self._tz)) for ts in progress.completion_dates.values()
        }

        for offset in range(1, max(0, months_back) * 31):
            day = today - timedelta(days=offset)
            if day < created_day:
                break
            key = date_key(day)
            stats = self._stats_for(record, key)
            if (stats is not None and stats.actions_today > 0) or key in journey_days:
                yield key, "completed"
            else:
                yield key, "missed"

    def get_calendar_data(self, months_back: int = 2) -> dict[str, CalendarMark]:
        return dict(self.iter_calendar_days(months_back))

    def check_and_reset_daily(self) -> bool:
        record = self._load("check_and_reset_daily")
        if record is None:
            return False

        today = self._today_key()
        if record.get("last_daily_reset") == today and self._stats_for(record, today) is not None:
            return False

        if self._stats_for(record, today) is None:
            self._put_stats(record, empty_daily_stats(today))
        record["last_daily_reset"] = today
        self._save(record)
        logger.debug("Daily reset performed", extra={"today": today})
        return True

    def sync_streak_from_journey(self) -> StreakData | None:
        """Seed streak data for records that predate activity tracking."""
        record = self._load("sync_streak_from_journey")
        if record is None or isinstance(record.get("streak_data"), dict):
            return None

        progress = parse_progress(record.get("journey_progress"))
        if not progress.completed_days:
            return None

        now = self._clock()
        activity_dates = [
            local_date(progress.completion_dates.get(day, now), self._tz)
            for day in progress.completed_days
        ]
        streak = streak_from_dates(activity_dates=activity_dates, today=self._today())
        record["streak_data"] = streak.model_dump(mode="json")
        self._save(record)
        return streak
