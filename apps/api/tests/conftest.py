from __future__ import annotations

import base64
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

# Ensure CI can import app settings without a local .env file.
_ENV_DEFAULTS = {
    "APP_ENV": "test",
    "FRONTEND_URL": "http://localhost:3000",
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_ANON_KEY": "test-anon-key",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
    "REMINDER_POLL_ENABLED": "false",
    "PUSH_NOTIFICATIONS_ENABLED": "false",
}
for _key, _value in _ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

import app.services.user_state as user_state
from app.core.security import AuthContext, verify_token
from app.main import app
from app.services.supabase_auth import clear_user_cache
from app.services.supabase_rest import SupabaseRest

TEST_USER_ID = "00000000-0000-4000-8000-000000000001"
TEST_EMAIL = "pytest-user@leap.test"
TEST_TZ = ZoneInfo("America/New_York")

# 2026-03-10 14:00 in New York (EDT, UTC-4).
FIXED_NOW = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def _base64url_json(value: dict[str, Any]) -> str:
    encoded = json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(encoded).decode("utf-8").rstrip("=")


def build_fake_jwt(*, user_id: str = TEST_USER_ID, email: str = TEST_EMAIL) -> str:
    header = _base64url_json({"alg": "HS256", "typ": "JWT"})
    payload = _base64url_json(
        {
            "sub": user_id,
            "email": email,
            "role": "authenticated",
            "aud": "authenticated",
        }
    )
    signature = "signature-for-tests"
    return f"{header}.{payload}.{signature}"


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class ManualPoller:
    """Records interval registrations instead of running them."""

    def __init__(self) -> None:
        self.jobs: list[tuple[float, Any]] = []
        self.cancelled = 0

    def every(self, seconds: float, callback):
        self.jobs.append((seconds, callback))
        poller = self

        class _Handle:
            def cancel(self) -> None:
                poller.cancelled += 1

        return _Handle()


@pytest.fixture(autouse=True)
def reset_test_state() -> None:
    app.dependency_overrides.clear()
    clear_user_cache()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_jwt_token() -> str:
    return build_fake_jwt()


@pytest.fixture
def auth_headers(fake_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {fake_jwt_token}"}


@pytest.fixture
def fake_auth_context(fake_jwt_token: str) -> AuthContext:
    return AuthContext(
        user_id=TEST_USER_ID,
        email=TEST_EMAIL,
        locale="en",
        tz=TEST_TZ,
        access_token=fake_jwt_token,
    )


@pytest.fixture
def authenticated_client(client: TestClient, fake_auth_context: AuthContext) -> TestClient:
    async def _override_verify_token() -> AuthContext:
        return fake_auth_context

    app.dependency_overrides[verify_token] = _override_verify_token
    return client


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    clock = FakeClock()
    monkeypatch.setattr(user_state, "utc_now", clock)
    return clock


@pytest.fixture
def manual_poller() -> ManualPoller:
    return ManualPoller()


@pytest.fixture
def supabase_mock(monkeypatch: pytest.MonkeyPatch) -> dict[str, AsyncMock]:
    mocks = {
        "select": AsyncMock(return_value=[]),
        "upsert_one": AsyncMock(return_value={}),
        "insert_one": AsyncMock(return_value={}),
        "invoke_function": AsyncMock(return_value={}),
    }

    async def _select(self: SupabaseRest, table: str, *, bearer_token: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await mocks["select"](table=table, bearer_token=bearer_token, params=params)

    async def _upsert_one(
        self: SupabaseRest,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
        on_conflict: str,
    ) -> dict[str, Any]:
        return await mocks["upsert_one"](
            table=table,
            bearer_token=bearer_token,
            row=row,
            on_conflict=on_conflict,
        )

    async def _insert_one(
        self: SupabaseRest,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
    ) -> dict[str, Any]:
        return await mocks["insert_one"](table=table, bearer_token=bearer_token, row=row)

    async def _invoke_function(
        self: SupabaseRest,
        fn_name: str,
        *,
        bearer_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await mocks["invoke_function"](
            fn_name=fn_name, bearer_token=bearer_token, payload=payload
        )

    monkeypatch.setattr(SupabaseRest, "select", _select)
    monkeypatch.setattr(SupabaseRest, "upsert_one", _upsert_one)
    monkeypatch.setattr(SupabaseRest, "insert_one", _insert_one)
    monkeypatch.setattr(SupabaseRest, "invoke_function", _invoke_function)
    return mocks


def stored_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "user_id": TEST_USER_ID,
        "created_at": "2026-03-01T12:00:00+00:00",
        "journey_progress": {
            "completed_days": [],
            "completion_dates": {},
            "current_day": 1,
            "focus_areas": ["tough-moments"],
            "journey_stage": "starting",
        },
        "daily_stats": {},
        "streak_data": {"current_streak": 0, "longest_streak": 0, "last_activity_date": ""},
        "activity_log": [],
        "last_daily_reset": None,
        "last_access": "2026-03-01T12:00:00+00:00",
    }
    record.update(overrides)
    return record


@pytest.fixture
def record_factory():
    return stored_record
