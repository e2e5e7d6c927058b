from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.engagement import DailyStats, StreakData

DayStatus = Literal["completed", "unlocked", "locked"]


class JourneyDay(BaseModel):
    day: int = Field(ge=1)
    title: str
    key_message: str
    activity: str
    tool: str


class CoreJourney(BaseModel):
    focus_area: str
    days: list[JourneyDay]


class PhaseModifier(BaseModel):
    phase: str
    tone: str
    pacing: str
    optional_extras: list[str] = Field(default_factory=list)


class ModifiedJourneyDay(JourneyDay):
    phase: str
    modified_tone: str
    modified_pacing: str
    optional_extras: list[str] = Field(default_factory=list)


class JourneyProgress(BaseModel):
    completed_days: list[int] = Field(default_factory=list)
    completion_dates: dict[int, datetime] = Field(default_factory=dict)
    current_day: int = 1
    focus_areas: list[str] = Field(default_factory=list)
    journey_stage: str = "starting"


class JourneyEnrollRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    focus_areas: list[str] = Field(default_factory=list, max_length=5)
    journey_stage: str = Field(default="starting", min_length=1, max_length=40)


class JourneyEnrollResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    created: bool
    journey: str
    phase: str
    current_day: int
    correlation_id: str


class JourneyCatalogResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    journeys: list[str]
    phases: list[str]
    total_days: int
    correlation_id: str


class PhaseModifierResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stage: str
    modifier: PhaseModifier
    correlation_id: str


class JourneyDayResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    day: ModifiedJourneyDay
    status: DayStatus
    unlocked: bool
    correlation_id: str


class JourneyWeekResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    week: int
    days: list[JourneyDay]
    correlation_id: str


class JourneyProgressResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_day: int
    current_day_status: DayStatus
    completed_days: list[int]
    completion_dates: dict[int, datetime]
    focus_areas: list[str]
    journey_stage: str
    correlation_id: str


class DayCompleteResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    day_number: int
    newly_completed: bool
    current_day: int
    stats: DailyStats
    streak: StreakData
    correlation_id: str
