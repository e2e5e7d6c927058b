from __future__ import annotations

from fastapi import APIRouter, HTTPException, Path, Request, Response, status

from app.core.correlation import correlation_id
from app.core.security import AuthDep
from app.schemas.reminders import (
    InboxMessage,
    NotificationPermissionRequest,
    NotificationPermissionResponse,
    ReminderInboxResponse,
    ReminderItem,
    ReminderListResponse,
    ReminderScheduleRequest,
)
from app.services.journey_engine import completed_on_local_day
from app.services.notifier import InAppNotifier, PushNotifier
from app.services.reminders import ReminderSchedule, ReminderScheduler
from app.services.user_state import open_user_session

router = APIRouter()


def _state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminders are not available",
        )
    return value


def _scheduler(request: Request) -> ReminderScheduler:
    return _state_attr(request, "reminder_scheduler")


def _to_items(reminders: list[ReminderSchedule]) -> list[ReminderItem]:
    return [
        ReminderItem(
            day_number=r.day_number,
            type=r.type,
            scheduled_for=r.scheduled_for,
            sent=r.sent,
        )
        for r in reminders
    ]


@router.post("/reminders/schedule", response_model=ReminderListResponse)
async def schedule_reminders(
    body: ReminderScheduleRequest, request: Request, response: Response, auth: AuthDep
) -> ReminderListResponse:
    cid = correlation_id(request, response)
    scheduler = _scheduler(request)

    completed_today = body.completed_today
    if completed_today is None:
        async with open_user_session(auth) as session:
            completed_today = completed_on_local_day(
                session.progress(), body.day_number, session.clock(), tz=auth.tz
            )

    scheduler.schedule_reminders(
        auth.user_id, body.day_number, completed_today, tz=auth.tz
    )
    return ReminderListResponse(
        reminders=_to_items(scheduler.get_scheduled_notifications(auth.user_id)),
        correlation_id=cid,
    )


@router.delete("/reminders/days/{day}", response_model=ReminderListResponse)
async def clear_day_reminders(
    request: Request,
    response: Response,
    auth: AuthDep,
    day: int = Path(ge=1, le=365),
) -> ReminderListResponse:
    cid = correlation_id(request, response)
    scheduler = _scheduler(request)
    scheduler.clear_day_reminders(auth.user_id, day)
    return ReminderListResponse(
        reminders=_to_items(scheduler.get_scheduled_notifications(auth.user_id)),
        correlation_id=cid,
    )


@router.get("/reminders", response_model=ReminderListResponse)
async def list_reminders(
    request: Request, response: Response, auth: AuthDep
) -> ReminderListResponse:
    cid = correlation_id(request, response)
    reminders = _scheduler(request).get_scheduled_notifications(auth.user_id)
    return ReminderListResponse(reminders=_to_items(reminders), correlation_id=cid)


@router.get("/reminders/inbox", response_model=ReminderInboxResponse)
async def drain_inbox(
    request: Request, response: Response, auth: AuthDep
) -> ReminderInboxResponse:
    cid = correlation_id(request, response)
    inbox: InAppNotifier = _state_attr(request, "in_app_notifier")
    messages = [
        InboxMessage(title=m.title, body=m.body, created_at=m.created_at)
        for m in inbox.drain(auth.user_id)
    ]
    return ReminderInboxResponse(messages=messages, correlation_id=cid)


@router.post("/reminders/permission", response_model=NotificationPermissionResponse)
async def request_notification_permission(
    request: Request,
    response: Response,
    auth: AuthDep,
    body: NotificationPermissionRequest | None = None,
) -> NotificationPermissionResponse:
    cid = correlation_id(request, response)
    push: PushNotifier = _state_attr(request, "push_notifier")

    reported = body.browser_permission if body else None
    if reported in {"granted", "denied"}:
        push.set_permission(auth.user_id, reported)  # type: ignore[arg-type]

    granted = await push.request_permission(auth.user_id)
    return NotificationPermissionResponse(granted=granted, correlation_id=cid)


@router.delete("/reminders", response_model=ReminderListResponse)
async def clear_all_reminders(
    request: Request, response: Response, auth: AuthDep
) -> ReminderListResponse:
    cid = correlation_id(request, response)
    scheduler = _scheduler(request)
    scheduler.clear_all_user_notifications(auth.user_id)
    return ReminderListResponse(reminders=[], correlation_id=cid)
