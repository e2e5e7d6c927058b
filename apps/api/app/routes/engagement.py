from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from app.core.correlation import correlation_id
from app.core.security import AuthDep
from app.schemas.engagement import (
    ActivityLogResponse,
    CalendarResponse,
    DailyResetResponse,
    LogActivityRequest,
    LogActivityResponse,
    StreakResponse,
    TodaysStatsResponse,
)
from app.services.engagement import recovery_strength_label, recovery_strength_message
from app.services.user_state import open_user_session

router = APIRouter()


@router.post("/engagement/activity", response_model=LogActivityResponse)
async def log_activity(
    body: LogActivityRequest, request: Request, response: Response, auth: AuthDep
) -> LogActivityResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        if not session.has_record():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Journey not started"
            )
        logged = session.tracker.log_activity(body.action, body.type, body.details)
        stats = session.tracker.get_todays_stats()
        streak = session.tracker.get_streak_data()

    return LogActivityResponse(logged=logged, stats=stats, streak=streak, correlation_id=cid)


@router.get("/engagement/activity", response_model=ActivityLogResponse)
async def get_activity_log(
    request: Request,
    response: Response,
    auth: AuthDep,
    limit: int = Query(default=20, ge=1, le=100),
) -> ActivityLogResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        entries = session.tracker.get_activity_log(limit)
    return ActivityLogResponse(entries=entries, correlation_id=cid)


@router.get("/engagement/today", response_model=TodaysStatsResponse)
async def get_todays_stats(
    request: Request, response: Response, auth: AuthDep
) -> TodaysStatsResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        stats = session.tracker.get_todays_stats()

    return TodaysStatsResponse(
        stats=stats,
        strength_label=recovery_strength_label(stats.recovery_strength),
        strength_message=recovery_strength_message(stats.recovery_strength),
        correlation_id=cid,
    )


@router.get("/engagement/streak", response_model=StreakResponse)
async def get_streak(request: Request, response: Response, auth: AuthDep) -> StreakResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        streak = session.tracker.get_streak_data()
    return StreakResponse(streak=streak, correlation_id=cid)


@router.get("/engagement/calendar", response_model=CalendarResponse)
async def get_calendar(
    request: Request,
    response: Response,
    auth: AuthDep,
    months_back: int = Query(default=2, ge=1, le=12),
) -> CalendarResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        days = session.tracker.get_calendar_data(months_back)

    completed = sum(1 for mark in days.values() if mark == "completed")
    return CalendarResponse(
        months_back=months_back,
        days=days,
        completed_count=completed,
        missed_count=len(days) - completed,
        correlation_id=cid,
    )


@router.post("/engagement/daily-reset", response_model=DailyResetResponse)
async def daily_reset(
    request: Request, response: Response, auth: AuthDep
) -> DailyResetResponse:
    cid = correlation_id(request, response)
    async with open_user_session(auth) as session:
        performed = session.tracker.check_and_reset_daily()
        stats = session.tracker.get_todays_stats()
    return DailyResetResponse(performed=performed, stats=stats, correlation_id=cid)
