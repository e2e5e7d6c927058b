from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from app.core.config import settings
from app.core.correlation import CORRELATION_HEADER, resolve_correlation_id
from app.routes.engagement import router as engagement_router
from app.routes.journey import router as journey_router
from app.routes.reminders import router as reminders_router
from app.services.error_log import log_system_error
from app.services.notifier import InAppNotifier, PushNotifier
from app.services.poller import ApschedulerPoller
from app.services.reminders import ReminderScheduler
from app.services.supabase_auth import get_current_user
from app.services.supabase_rest import SupabaseRestError, close_http

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    in_app = InAppNotifier(retention_hours=settings.reminder_retention_hours)
    push = PushNotifier(
        enabled=settings.push_notifications_enabled,
        supabase_url=str(settings.supabase_url),
        service_role_key=settings.supabase_service_role_key,
        function_name=settings.push_function_name,
    )
    scheduler = ReminderScheduler(
        [in_app, push],
        poll_seconds=settings.reminder_poll_seconds,
        retention_hours=settings.reminder_retention_hours,
    )
    app.state.in_app_notifier = in_app
    app.state.push_notifier = push
    app.state.reminder_scheduler = scheduler

    poller: ApschedulerPoller | None = None
    if settings.reminder_poll_enabled:
        poller = ApschedulerPoller()
        scheduler.start(poller)
        logger.info(
            "Reminder polling enabled",
            extra={"seconds": settings.reminder_poll_seconds},
        )

    yield

    scheduler.stop()
    if poller is not None:
        await poller.shutdown()
    await close_http()


app = FastAPI(title="LEAP Journey API", version="0.1.0", lifespan=lifespan)


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[FastApiIntegration()],
        traces_sample_rate=max(0.0, min(settings.sentry_traces_sample_rate, 1.0)),
        send_default_pii=False,
        environment=settings.app_env,
    )


_init_sentry()


def _origin(url: str) -> str:
    # FRONTEND_URL may include a trailing slash or a path; CORS compares origins.
    p = urlparse(url)
    if p.scheme and p.netloc:
        return f"{p.scheme}://{p.netloc}"
    return url.rstrip("/")


_ALLOWED_ORIGINS = sorted(
    {
        _origin(str(settings.frontend_url)),
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)


@app.middleware("http")
async def correlation_and_error_logging(request: Request, call_next):
    cid = resolve_correlation_id(request)
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = cid
    if response.status_code >= 500:
        await log_system_error(
            route=str(request.url.path),
            message=f"Server response status {response.status_code}",
            user_id=await _try_get_user_id_from_request(request),
            correlation_id=cid,
            meta={
                "status_code": response.status_code,
                "method": request.method,
                "path": str(request.url.path),
            },
        )
    return response


@app.get("/health")
async def health() -> dict:
    scheduler = getattr(app.state, "reminder_scheduler", None)
    return {"ok": True, "reminders_running": bool(scheduler and scheduler.running)}


async def _try_get_user_id_from_request(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    if not token:
        return None
    try:
        user = await get_current_user(access_token=token, use_cache=True)
        uid = user.get("id")
        return uid if isinstance(uid, str) and uid.strip() else None
    except Exception:
        return None


@app.exception_handler(SupabaseRestError)
async def supabase_rest_error_handler(request: Request, exc: SupabaseRestError):
    cid = resolve_correlation_id(request)
    msg = str(exc) or "Supabase request failed"
    is_rls_write_violation = (
        exc.code == "42501" and "row-level security policy" in msg.lower()
    )

    detail: dict[str, str | None]
    if is_rls_write_violation:
        detail = {
            "message": "Saving journey state was rejected by row-level security.",
            "hint": "Check the user_journey_state write policy for authenticated users.",
            "code": exc.code,
        }
        status_code = 503
    else:
        detail = {
            "message": "Supabase data request failed.",
            "hint": exc.hint,
            "code": exc.code,
        }
        # Propagate 4xx; normalize 5xx to 502.
        status_code = exc.status_code if 400 <= exc.status_code < 500 else 502

    await log_system_error(
        route=str(request.url.path),
        message="Supabase request failed",
        user_id=await _try_get_user_id_from_request(request),
        correlation_id=cid,
        err=exc,
        meta={
            "status_code": exc.status_code,
            "code": exc.code,
            "path": str(request.url.path),
        },
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail},
        headers={CORRELATION_HEADER: cid},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    cid = resolve_correlation_id(request)
    logger.error("Unhandled server error", exc_info=exc)
    await log_system_error(
        route=str(request.url.path),
        message="Unhandled server error",
        user_id=await _try_get_user_id_from_request(request),
        correlation_id=cid,
        err=exc,
        meta={"method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers={CORRELATION_HEADER: cid},
    )


app.include_router(journey_router, prefix="/api")
app.include_router(engagement_router, prefix="/api")
app.include_router(reminders_router, prefix="/api")
