from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Protocol

from app.services.clock import Clock, utc_now
from app.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)

PermissionState = Literal["default", "granted", "denied"]

_INBOX_LIMIT = 20
_PUSH_TAG = "leap-reminder"


class Notifier(Protocol):
    async def show(self, *, user_id: str, title: str, body: str) -> None: ...


@dataclass(frozen=True)
class InAppMessage:
    title: str
    body: str
    created_at: datetime


class InAppNotifier:
    """Toast-equivalent channel: messages wait in a small per-user inbox."""

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        limit: int = _INBOX_LIMIT,
        retention_hours: int = 24,
    ) -> None:
        self._clock = clock
        self._limit = limit
        self._retention = timedelta(hours=retention_hours)
        self._inbox: dict[str, deque[InAppMessage]] = {}

    async def show(self, *, user_id: str, title: str, body: str) -> None:
        now = self._clock()
        self._purge(now)
        box = self._inbox.setdefault(user_id, deque(maxlen=self._limit))
        box.append(InAppMessage(title=title, body=body, created_at=now))

    def drain(self, user_id: str) -> list[InAppMessage]:
        box = self._inbox.pop(user_id, None)
        if not box:
            return []
        cutoff = self._clock() - self._retention
        return [m for m in box if m.created_at >= cutoff]

    def _purge(self, now: datetime) -> None:
        # Boxes are append-only, so the newest message is last.
        cutoff = now - self._retention
        stale = [uid for uid, box in self._inbox.items() if box[-1].created_at < cutoff]
        for uid in stale:
            del self._inbox[uid]
        if stale:
            logger.debug("Purged stale in-app inboxes", extra={"users": len(stale)})


class PushNotifier:
    """
    OS-level notifications sent through a Supabase edge function.

    Only delivers to users whose permission state is ``granted``; the state
    is resolved from their stored push subscriptions.
    """

    def __init__(
        self,
        *,
        enabled: bool,
        supabase_url: str,
        service_role_key: str,
        function_name: str,
    ) -> None:
        self._enabled = enabled
        self._service_role_key = service_role_key
        self._function_name = function_name
        self._sb = SupabaseRest(supabase_url, service_role_key)
        self._permissions: dict[str, PermissionState] = {}

    def permission(self, user_id: str) -> PermissionState:
        return self._permissions.get(user_id, "default")

    def set_permission(self, user_id: str, state: PermissionState) -> None:
        self._permissions[user_id] = state

    async def request_permission(self, user_id: str) -> bool:
        if not self._enabled:
            logger.warning("Push notifications are not supported in this deployment")
            return False

        state = self.permission(user_id)
        if state == "granted":
            return True
        if state == "denied":
            logger.warning("Notification permission denied", extra={"user_id": user_id})
            return False

        try:
            rows = await self._sb.select(
                "push_subscriptions",
                bearer_token=self._service_role_key,
                params={
                    "select": "id",
                    "user_id": f"eq.{user_id}",
                    "limit": 1,
                },
            )
        except Exception:
            logger.error(
                "Failed to request notification permission",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return False

        granted = bool(rows)
        # No subscription yet means the browser has not granted; ask again later.
        if granted:
            self.set_permission(user_id, "granted")
        logger.debug("Notification permission requested", extra={"granted": granted})
        return granted

    async def show(self, *, user_id: str, title: str, body: str) -> None:
        if not self._enabled or self.permission(user_id) != "granted":
            return
        await self._sb.invoke_function(
            self._function_name,
            bearer_token=self._service_role_key,
            payload={
                "user_id": user_id,
                "title": title,
                "body": body,
                "tag": _PUSH_TAG,
            },
        )
