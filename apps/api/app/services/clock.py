from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

Clock = Callable[[], datetime]

UTC = ZoneInfo("UTC")

_DEFAULT_TZ_BY_LOCALE: dict[str, str] = {
    "en": "America/New_York",
    "es": "America/Mexico_City",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: ZoneInfo | None) -> datetime:
    return to_utc(dt).astimezone(tz or UTC)


def resolve_user_timezone(locale: str | None, timezone_name: str | None) -> ZoneInfo:
    if timezone_name:
        try:
            return ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    key = (locale or "en").strip().lower()
    fallback = _DEFAULT_TZ_BY_LOCALE.get(key, "UTC")
    return ZoneInfo(fallback)


def local_date(dt: datetime, tz: ZoneInfo | None) -> date:
    return to_local(dt, tz).date()


def date_key(day: date) -> str:
    return day.isoformat()


def at_local_time(day: date, at: time, tz: ZoneInfo | None) -> datetime:
    """Wall-clock ``at`` on ``day`` in ``tz``, as an aware datetime."""
    return datetime.combine(day, at, tzinfo=tz or UTC)


def end_of_local_day(now: datetime, tz: ZoneInfo | None) -> datetime:
    local = to_local(now, tz)
    return at_local_time(local.date(), time(23, 59, 59, 999000), tz)


def parse_instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = f"{raw[:-1]}+00:00"
        try:
            return to_utc(datetime.fromisoformat(raw))
        except ValueError:
            return None
    return None
