"""
Configuration and settings for the incubator backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    app_url: str = Field(default="http://localhost:9002", alias="APP_URL")

    # Firebase (Firestore + Auth)
    firebase_project_id: Optional[str] = Field(
        default=None, alias="FIREBASE_PROJECT_ID"
    )
    firebase_client_email: Optional[str] = Field(
        default=None, alias="FIREBASE_CLIENT_EMAIL"
    )
    firebase_private_key: Optional[str] = Field(
        default=None, alias="FIREBASE_PRIVATE_KEY"
    )
    firebase_web_api_key: Optional[str] = Field(
        default=None, alias="FIREBASE_WEB_API_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="INNONEXUS_USE_IN_MEMORY_BACKENDS"
    )

    # Operational secrets
    cleanup_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLEANUP_API_KEY", "CLEANUP_SECRET"),
    )
    cron_secret: Optional[str] = Field(default=None, alias="CRON_SECRET")

    # Google Sheets import of off-campus applications
    google_service_account_key_json: Optional[str] = Field(
        default=None, alias="GOOGLE_SERVICE_ACCOUNT_KEY_JSON"
    )
    off_campus_sheet_id: Optional[str] = Field(
        default=None, alias="OFF_CAMPUS_SHEET_ID"
    )
    off_campus_sheet_range: str = Field(
        default="Form Responses 1!A1:Z", alias="OFF_CAMPUS_SHEET_RANGE"
    )

    # Email (Resend)
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")
    resend_from_email: str = Field(
        default="TBI Platform <onboarding@resend.dev>", alias="RESEND_FROM_EMAIL"
    )

    # Shared activity tracking for the session keeper (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_activity_prefix: str = Field(
        default="innonexus:last_activity", alias="REDIS_ACTIVITY_PREFIX"
    )

    email_token_ttl_days: int = Field(default=7, alias="EMAIL_TOKEN_TTL_DAYS")

    # Session keeper timings, in seconds
    session_refresh_interval: float = Field(
        default=30 * 60, alias="SESSION_REFRESH_INTERVAL"
    )
    session_check_interval: float = Field(
        default=5 * 60, alias="SESSION_CHECK_INTERVAL"
    )
    session_max_inactive: float = Field(
        default=2 * 60 * 60, alias="SESSION_MAX_INACTIVE"
    )
    session_max_age: float = Field(default=24 * 60 * 60, alias="SESSION_MAX_AGE")

    @property
    def firebase_configured(self) -> bool:
        return bool(self.firebase_project_id)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
