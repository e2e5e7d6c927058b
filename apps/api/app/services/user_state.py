from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.security import AuthContext
from app.schemas.engagement import StreakData
from app.schemas.journey import JourneyProgress
from app.services.clock import Clock, utc_now
from app.services.engagement import EngagementTracker
from app.services.journey_engine import parse_progress
from app.services.state_store import MemoryStateStore, user_key_for
from app.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)


def new_user_record(
    *,
    user_id: str,
    created_at: datetime,
    focus_areas: list[str] | None = None,
    journey_stage: str = "starting",
) -> dict[str, Any]:
    progress = JourneyProgress(focus_areas=list(focus_areas or []), journey_stage=journey_stage)
    return {
        "user_id": user_id,
        "created_at": created_at.isoformat(),
        "journey_progress": progress.model_dump(mode="json"),
        "daily_stats": {},
        "streak_data": StreakData().model_dump(mode="json"),
        "activity_log": [],
        "last_daily_reset": None,
        "last_access": created_at.isoformat(),
    }


async def load_user_record(*, user_id: str, access_token: str) -> Any | None:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    rows = await sb.select(
        settings.user_state_table,
        bearer_token=access_token,
        params={
            "select": "record",
            "user_id": f"eq.{user_id}",
            "limit": 1,
        },
    )
    if not rows:
        return None
    return rows[0].get("record")


async def save_user_record(
    *, user_id: str, access_token: str, record: dict[str, Any]
) -> None:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    await sb.upsert_one(
        settings.user_state_table,
        bearer_token=access_token,
        on_conflict="user_id",
        row={
            "user_id": user_id,
            "record": record,
            "updated_at": utc_now().isoformat(),
        },
    )


@dataclass
class UserSession:
    user_id: str
    user_key: str
    store: MemoryStateStore
    tracker: EngagementTracker
    tz: ZoneInfo
    clock: Clock

    def record(self) -> dict[str, Any] | None:
        return self.store.get(self.user_key)

    def has_record(self) -> bool:
        return self.record() is not None

    def create_record(self, *, focus_areas: list[str], journey_stage: str) -> bool:
        if self.has_record():
            return False
        self.store.set(
            self.user_key,
            new_user_record(
                user_id=self.user_id,
                created_at=self.clock(),
                focus_areas=focus_areas,
                journey_stage=journey_stage,
            ),
        )
        return True

    def progress(self) -> JourneyProgress:
        record = self.record()
        return parse_progress(record.get("journey_progress") if record else None)

    def save_progress(self, progress: JourneyProgress) -> bool:
        record = self.record()
        if record is None:
            logger.warning("No stored record for user; journey progress not saved")
            return False
        record["journey_progress"] = progress.model_dump(mode="json")
        self.store.set(self.user_key, record)
        return True


@asynccontextmanager
async def open_user_session(
    auth: AuthContext, *, clock: Clock | None = None
) -> AsyncIterator[UserSession]:
    """
    Load the user's record into a private in-memory store, run the engine
    against it and write it back only if it changed.
    """
    clock = clock or utc_now
    raw = await load_user_record(user_id=auth.user_id, access_token=auth.access_token)

    key = user_key_for(auth.user_id)
    store = MemoryStateStore()
    if isinstance(raw, dict):
        store.set(key, raw)
    elif isinstance(raw, str):
        store.put_raw(key, raw)
    elif raw is not None:
        logger.error(
            "Stored user record has unexpected type",
            extra={"user_id": auth.user_id, "type": type(raw).__name__},
        )

    before = store.get(key)
    tracker = EngagementTracker(
        store,
        key,
        clock=clock,
        tz=auth.tz,
        daily_quota=settings.daily_activity_quota,
        log_limit=settings.activity_log_limit,
    )
    session = UserSession(
        user_id=auth.user_id,
        user_key=key,
        store=store,
        tracker=tracker,
        tz=auth.tz,
        clock=clock,
    )
    if before is not None:
        tracker.sync_streak_from_journey()

    yield session

    after = store.get(key)
    if after is not None and after != before:
        await save_user_record(
            user_id=auth.user_id, access_token=auth.access_token, record=after
        )
