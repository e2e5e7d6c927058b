from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReminderType = Literal["12hour", "3hour", "1hour"]


class ReminderScheduleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    day_number: int = Field(ge=1, le=365)
    # When omitted the stored journey progress decides.
    completed_today: bool | None = None


class ReminderItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    day_number: int
    type: ReminderType
    scheduled_for: datetime
    sent: bool


class ReminderListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reminders: list[ReminderItem]
    correlation_id: str


class InboxMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    body: str
    created_at: datetime


class ReminderInboxResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    messages: list[InboxMessage]
    correlation_id: str


class NotificationPermissionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    granted: bool
    correlation_id: str


class NotificationPermissionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Browser-side Notification.permission, when the client already knows it.
    browser_permission: Literal["default", "granted", "denied"] | None = None
