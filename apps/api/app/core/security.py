from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, cast
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Request, status

from app.core.config import settings
from app.services.clock import resolve_user_timezone
from app.services.supabase_auth import get_current_user


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: str | None
    locale: str
    tz: ZoneInfo
    access_token: str


_SUPPORTED_LOCALES = {"en", "es"}


def _normalize_locale(value: object) -> str:
    fallback = settings.default_locale
    if not isinstance(value, str):
        return fallback
    s = value.strip().lower()
    return s if s in _SUPPORTED_LOCALES else fallback


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token"
        )
    token = auth.split(" ", 1)[1].strip()
    if (not token) or (" " in token) or (len(token) < 20):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token"
        )
    return token


async def get_auth_context(request: Request) -> AuthContext:
    token = _get_bearer_token(request)

    # Identity is owned by Supabase Auth; this service only reads it.
    try:
        user = await get_current_user(access_token=token, use_cache=True)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )

    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )

    email = user.get("email")
    email_str = email if isinstance(email, str) and email.strip() else None
    raw_metadata = user.get("user_metadata")
    metadata: dict[str, Any] = (
        cast(dict[str, Any], raw_metadata) if isinstance(raw_metadata, dict) else {}
    )
    locale = _normalize_locale(metadata.get("language"))
    timezone_name = metadata.get("timezone")
    tz = resolve_user_timezone(
        locale, timezone_name if isinstance(timezone_name, str) else None
    )

    return AuthContext(
        user_id=user_id,
        email=email_str,
        locale=locale,
        tz=tz,
        access_token=token,
    )


async def verify_token(request: Request) -> AuthContext:
    return await get_auth_context(request)


AuthDep = Annotated[AuthContext, Depends(verify_token)]
