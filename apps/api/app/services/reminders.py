from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from app.schemas.reminders import ReminderType
from app.services.clock import Clock, end_of_local_day, to_utc, utc_now
from app.services.notifier import Notifier
from app.services.poller import PollHandle, PollScheduler

logger = logging.getLogger(__name__)

# Offsets before the end of the user's local day, in scheduling order.
REMINDER_OFFSETS: tuple[tuple[ReminderType, timedelta], ...] = (
    ("12hour", timedelta(hours=12)),
    ("3hour", timedelta(hours=3)),
    ("1hour", timedelta(hours=1)),
)

REMINDER_COPY: dict[ReminderType, tuple[str, str]] = {
    "12hour": ("Daily LEAP Reminder", "You've got 12 hours left to finish today's LEAP."),
    "3hour": ("Almost There!", "3 hours left—let's finish strong."),
    "1hour": ("Final Hour!", "1 hour left today. Take your LEAP now."),
}


@dataclass
class ReminderSchedule:
    user_id: str
    day_number: int
    scheduled_for: datetime
    type: ReminderType
    sent: bool = False


class ReminderScheduler:
    def __init__(
        self,
        notifiers: Sequence[Notifier],
        *,
        clock: Clock = utc_now,
        poll_seconds: int = 60,
        retention_hours: int = 24,
    ) -> None:
        self._notifiers = tuple(notifiers)
        self._clock = clock
        self._poll_seconds = poll_seconds
        self._retention = timedelta(hours=retention_hours)
        self._pending: dict[str, list[ReminderSchedule]] = {}
        self._handle: PollHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def schedule_reminders(
        self,
        user_id: str,
        day_number: int,
        completed_today: bool,
        *,
        tz: ZoneInfo | None = None,
    ) -> list[ReminderSchedule]:
        if completed_today:
            self.clear_day_reminders(user_id, day_number)
            return []

        now = to_utc(self._clock())
        end_of_day = end_of_local_day(now, tz)
        created = [
            ReminderSchedule(
                user_id=user_id,
                day_number=day_number,
                scheduled_for=to_utc(end_of_day - offset),
                type=kind,
            )
            for kind, offset in REMINDER_OFFSETS
            if now < end_of_day - offset
        ]

        kept = [r for r in self._pending.get(user_id, []) if r.day_number != day_number]
        self._pending[user_id] = kept + created

        logger.debug(
            "Reminders scheduled",
            extra={
                "user_id": user_id,
                "day_number": day_number,
                "scheduled_count": len(created),
            },
        )
        return [replace(r) for r in created]

    def clear_day_reminders(self, user_id: str, day_number: int) -> int:
        current = self._pending.get(user_id)
        if not current:
            return 0
        kept = [r for r in current if r.day_number != day_number]
        removed = len(current) - len(kept)
        if kept:
            self._pending[user_id] = kept
        else:
            self._pending.pop(user_id, None)
        logger.debug(
            "Day reminders cleared",
            extra={"user_id": user_id, "day_number": day_number, "removed": removed},
        )
        return removed

    def clear_all_user_notifications(self, user_id: str) -> None:
        self._pending.pop(user_id, None)
        logger.debug("All user notifications cleared", extra={"user_id": user_id})

    def get_scheduled_notifications(self, user_id: str) -> list[ReminderSchedule]:
        return [replace(r) for r in self._pending.get(user_id, [])]

    async def check_and_send(self) -> int:
        now = to_utc(self._clock())
        cutoff = now - self._retention
        due: list[ReminderSchedule] = []

        # Flag everything due before the first await so an overlapping run
        # cannot pick the same reminder up again.
        for user_id in list(self._pending):
            reminders = self._pending[user_id]
            for reminder in reminders:
                if not reminder.sent and reminder.scheduled_for <= now:
                    reminder.sent = True
                    due.append(reminder)
            kept = [r for r in reminders if r.scheduled_for > cutoff]
            if kept:
                self._pending[user_id] = kept
            else:
                self._pending.pop(user_id, None)

        for reminder in due:
            await self._deliver(reminder)
        return len(due)

    async def _deliver(self, reminder: ReminderSchedule) -> None:
        title, body = REMINDER_COPY[reminder.type]
        for notifier in self._notifiers:
            try:
                await notifier.show(user_id=reminder.user_id, title=title, body=body)
            except Exception:
                logger.warning(
                    "Reminder delivery failed",
                    exc_info=True,
                    extra={
                        "user_id": reminder.user_id,
                        "day_number": reminder.day_number,
                        "reminder_type": reminder.type,
                        "notifier": type(notifier).__name__,
                    },
                )
        logger.debug(
            "Reminder sent",
            extra={
                "user_id": reminder.user_id,
                "day_number": reminder.day_number,
                "reminder_type": reminder.type,
            },
        )

    def start(self, poller: PollScheduler) -> None:
        if self._handle is not None:
            return
        self._handle = poller.every(self._poll_seconds, self.check_and_send)
        logger.debug("Reminder checker started", extra={"seconds": self._poll_seconds})

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.debug("Reminder checker stopped")
