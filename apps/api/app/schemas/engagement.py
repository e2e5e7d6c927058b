from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ActivityType = Literal["journey", "tool", "peer", "general"]
WellnessLevel = Literal["Good", "Fair", "Needs Attention"]
CalendarMark = Literal["completed", "missed"]

ACTIVITY_TYPES: tuple[str, ...] = ("journey", "tool", "peer", "general")


class DailyStats(BaseModel):
    date: str
    actions_today: int = Field(default=0, ge=0)
    tools_used_today: int = Field(default=0, ge=0)
    journey_activities_completed: int = Field(default=0, ge=0)
    recovery_strength: int = Field(default=0, ge=0, le=100)
    wellness_level: WellnessLevel = "Needs Attention"


class StreakData(BaseModel):
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity_date: str = ""


class ActivityLogEntry(BaseModel):
    id: str
    action: str
    timestamp: str
    type: ActivityType
    details: str | None = None


class LogActivityRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: str = Field(min_length=1, max_length=120)
    type: ActivityType = "general"
    details: str | None = Field(default=None, max_length=500)


class TodaysStatsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stats: DailyStats
    strength_label: str
    strength_message: str
    correlation_id: str


class LogActivityResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    logged: bool
    stats: DailyStats
    streak: StreakData
    correlation_id: str


class StreakResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    streak: StreakData
    correlation_id: str


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entries: list[ActivityLogEntry]
    correlation_id: str


class CalendarResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    months_back: int
    days: dict[str, CalendarMark]
    completed_count: int
    missed_count: int
    correlation_id: str


class DailyResetResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    performed: bool
    stats: DailyStats
    correlation_id: str
