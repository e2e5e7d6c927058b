from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Path, Request, Response, status

from app.core.config import settings
from app.core.correlation import correlation_id
from app.core.security import AuthDep
from app.schemas.journey import (
    DayCompleteResponse,
    JourneyCatalogResponse,
    JourneyDayResponse,
    JourneyEnrollRequest,
    JourneyEnrollResponse,
    JourneyProgressResponse,
    JourneyWeekResponse,
    PhaseModifierResponse,
)
from app.services.journey_content import DEFAULT_JOURNEY, apply_phase_modifier, get_catalog
from app.services.journey_engine import get_day_status, is_day_unlocked, mark_day_complete
from app.services.reminders import ReminderScheduler
from app.services.user_state import open_user_session

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_STARTED = "Journey not started"


def _bypass_unlock() -> bool:
    return settings.journey_testing_mode and not settings.is_production()


def _scheduler(request: Request) -> ReminderScheduler | None:
    return getattr(request.app.state, "reminder_scheduler", None)


@router.post("/journey/enroll", response_model=JourneyEnrollResponse)
async def enroll(
    body: JourneyEnrollRequest, request: Request, response: Response, auth: AuthDep
) -> JourneyEnrollResponse:
    cid = correlation_id(request, response)
    catalog = get_catalog()

    async with open_user_session(auth) as session:
        created = session.create_record(
            focus_areas=body.focus_areas, journey_stage=body.journey_stage
        )
        progress = session.progress()

    journey = catalog.get_user_journey(progress.focus_areas)
    modifier = catalog.get_phase_modifier(progress.journey_stage)
    if created:
        logger.info("Journey enrollment created", extra={"user_id": auth.user_id})
    return JourneyEnrollResponse(
        created=created,
        journey=journey.focus_area if journey else DEFAULT_JOURNEY,
        phase=modifier.phase,
        current_day=progress.current_day,
        correlation_id=cid,
    )


@router.get("/journey/catalog", response_model=JourneyCatalogResponse)
async def get_journey_catalog(
    request: Request, response: Response, auth: AuthDep
) -> JourneyCatalogResponse:
    catalog = get_catalog()
    return JourneyCatalogResponse(
        journeys=catalog.get_available_journeys(),
        phases=catalog.get_available_phases(),
        total_days=catalog.total_days,
        correlation_id=correlation_id(request, response),
    )


@router.get("/journey/phases/{stage}", response_model=PhaseModifierResponse)
async def get_phase(
    request: Request,
    response: Response,
    auth: AuthDep,
    stage: str = Path(min_length=1, max_length=40),
) -> PhaseModifierResponse:
    return PhaseModifierResponse(
        stage=stage,
        modifier=get_catalog().get_phase_modifier(stage),
        correlation_id=correlation_id(request, response),
    )


@router.get("/journey/days/{day}", response_model=JourneyDayResponse)
async def get_day(
    request: Request,
    response: Response,
    auth: AuthDep,
    day: int = Path(ge=1, le=365),
) -> JourneyDayResponse:
    cid = correlation_id(request, response)
    catalog = get_catalog()

    async with open_user_session(auth) as session:
        progress = session.progress()
        now = session.clock()

    content = catalog.get_journey_day(progress.focus_areas, day)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Journey day not found")

    modifier = catalog.get_phase_modifier(progress.journey_stage)
    day_status = get_day_status(progress, day, now, tz=auth.tz, bypass=_bypass_unlock())
    return JourneyDayResponse(
        day=apply_phase_modifier(content, modifier),
        status=day_status,
        unlocked=day_status != "locked",
        correlation_id=cid,
    )


@router.get("/journey/weeks/{week}", response_model=JourneyWeekResponse)
async def get_week(
    request: Request,
    response: Response,
    auth: AuthDep,
    week: int = Path(ge=1, le=53),
) -> JourneyWeekResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        progress = session.progress()

    return JourneyWeekResponse(
        week=week,
        days=get_catalog().get_journey_week(progress.focus_areas, week),
        correlation_id=cid,
    )


@router.get("/journey/progress", response_model=JourneyProgressResponse)
async def get_progress(
    request: Request, response: Response, auth: AuthDep
) -> JourneyProgressResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        progress = session.progress()
        now = session.clock()

    return JourneyProgressResponse(
        current_day=progress.current_day,
        current_day_status=get_day_status(
            progress, progress.current_day, now, tz=auth.tz, bypass=_bypass_unlock()
        ),
        completed_days=progress.completed_days,
        completion_dates=progress.completion_dates,
        focus_areas=progress.focus_areas,
        journey_stage=progress.journey_stage,
        correlation_id=cid,
    )


@router.post("/journey/days/{day}/complete", response_model=DayCompleteResponse)
async def complete_day(
    request: Request,
    response: Response,
    auth: AuthDep,
    day: int = Path(ge=1, le=365),
) -> DayCompleteResponse:
    cid = correlation_id(request, response)
    if day > settings.journey_total_days:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Journey day not found")

    async with open_user_session(auth) as session:
        if not session.has_record():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_STARTED)

        progress = session.progress()
        now = session.clock()
        already_done = day in progress.completed_days
        if not already_done and not is_day_unlocked(
            progress.completed_days,
            day,
            now,
            progress.completion_dates,
            tz=auth.tz,
            bypass=_bypass_unlock(),
        ):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Journey day is locked")

        newly_completed = mark_day_complete(
            progress, day, now, total_days=settings.journey_total_days
        )
        if newly_completed:
            session.save_progress(progress)
            session.tracker.log_activity(f"Completed journey day {day}", "journey")
        stats = session.tracker.get_todays_stats()
        streak = session.tracker.get_streak_data()

    scheduler = _scheduler(request)
    if scheduler is not None:
        scheduler.clear_day_reminders(auth.user_id, day)

    return DayCompleteResponse(
        day_number=day,
        newly_completed=newly_completed,
        current_day=progress.current_day,
        stats=stats,
        streak=streak,
        correlation_id=cid,
    )
