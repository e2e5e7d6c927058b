from __future__ import annotations

import time
from typing import Any

from app.core.config import settings
from app.services.supabase_rest import get_http

_USER_CACHE: dict[str, tuple[float, dict[str, Any]]] = {}
_CACHE_TTL_SECONDS = 30.0
_CACHE_MAX_ENTRIES = 2048


def _cache_get(token: str) -> dict[str, Any] | None:
    entry = _USER_CACHE.get(token)
    if not entry:
        return None
    expires_at, user = entry
    if expires_at <= time.time():
        _USER_CACHE.pop(token, None)
        return None
    return user


def _cache_set(token: str, user: dict[str, Any]) -> None:
    if len(_USER_CACHE) >= _CACHE_MAX_ENTRIES:
        _USER_CACHE.clear()
    _USER_CACHE[token] = (time.time() + _CACHE_TTL_SECONDS, user)


def clear_user_cache() -> None:
    _USER_CACHE.clear()


async def get_current_user(
    *, access_token: str, use_cache: bool = True
) -> dict[str, Any]:
    """
    Resolve the Supabase Auth user behind ``access_token``.

    Timezone and language live in ``user_metadata`` and can change between
    sessions, so cached entries expire after a short TTL.
    """
    if use_cache:
        cached = _cache_get(access_token)
        if cached is not None:
            return cached

    url = str(settings.supabase_url).rstrip("/") + "/auth/v1/user"
    headers = {
        "apikey": settings.supabase_anon_key,
        "authorization": f"Bearer {access_token}",
        "accept": "application/json",
    }
    resp = await get_http().get(url, headers=headers)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict) or not data.get("id"):
        raise ValueError("Unexpected Supabase user response")

    if use_cache:
        _cache_set(access_token, data)
    return data
