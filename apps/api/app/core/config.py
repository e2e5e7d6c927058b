from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from pydantic import AnyUrl, Field
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_env: str = Field(default="development", alias="APP_ENV")
    frontend_url: AnyUrl = Field(alias="FRONTEND_URL")
    default_locale: str = Field(default="en", alias="DEFAULT_LOCALE")

    # Supabase
    supabase_url: AnyUrl = Field(alias="SUPABASE_URL")
    supabase_anon_key: str = Field(alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: str = Field(alias="SUPABASE_SERVICE_ROLE_KEY")
    user_state_table: str = Field(default="user_journey_state", alias="USER_STATE_TABLE")

    # Observability
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    sentry_traces_sample_rate: float = Field(
        default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE"
    )

    # Journey / engagement
    journey_total_days: int = Field(default=90, alias="JOURNEY_TOTAL_DAYS")
    daily_activity_quota: int = Field(default=5, alias="DAILY_ACTIVITY_QUOTA")
    activity_log_limit: int = Field(default=100, alias="ACTIVITY_LOG_LIMIT")
    # Unlocks every day regardless of completion timing. Development only.
    journey_testing_mode: bool = Field(default=False, alias="JOURNEY_TESTING_MODE")

    # Reminders
    reminder_poll_enabled: bool = Field(default=True, alias="REMINDER_POLL_ENABLED")
    reminder_poll_seconds: int = Field(default=60, alias="REMINDER_POLL_SECONDS")
    reminder_retention_hours: int = Field(
        default=24, alias="REMINDER_RETENTION_HOURS"
    )
    push_notifications_enabled: bool = Field(
        default=False, alias="PUSH_NOTIFICATIONS_ENABLED"
    )
    push_function_name: str = Field(
        default="send-push-notification", alias="PUSH_FUNCTION_NAME"
    )

    @model_validator(mode="after")
    def validate_runtime_constraints(self) -> "Settings":
        is_prod = self.is_production()

        frontend_origin = urlparse(str(self.frontend_url))
        frontend_host = (frontend_origin.hostname or "").lower()
        if is_prod and frontend_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid FRONTEND_URL for production: localhost is not allowed. "
                "Set FRONTEND_URL to your public web domain."
            )

        supabase_origin = urlparse(str(self.supabase_url))
        supabase_host = (supabase_origin.hostname or "").lower()
        if is_prod and supabase_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid SUPABASE_URL for production: localhost is not allowed."
            )
        if is_prod and self.journey_testing_mode:
            raise ValueError("JOURNEY_TESTING_MODE must be disabled in production.")

        if not (7 <= self.journey_total_days <= 365):
            raise ValueError("JOURNEY_TOTAL_DAYS must be between 7 and 365")
        if not (1 <= self.daily_activity_quota <= 50):
            raise ValueError("DAILY_ACTIVITY_QUOTA must be between 1 and 50")
        if not (1 <= self.activity_log_limit <= 1000):
            raise ValueError("ACTIVITY_LOG_LIMIT must be between 1 and 1000")
        if not (5 <= self.reminder_poll_seconds <= 3600):
            raise ValueError("REMINDER_POLL_SECONDS must be between 5 and 3600")
        if not (1 <= self.reminder_retention_hours <= 168):
            raise ValueError("REMINDER_RETENTION_HOURS must be between 1 and 168")

        return self

    def is_production(self) -> bool:
        env = (self.app_env or "").strip().lower()
        return env in {"production", "prod"}


settings = Settings()  # type: ignore[call-arg]  # singleton import via env settings
