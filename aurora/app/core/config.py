"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from aurora.app.core.config import settings
    print(settings.DATABASE_URL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Aurora Safety SOS"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./aurora_safety.db"
    DATABASE_ECHO: bool = False  # log SQL queries

    # ── Remote collector (network send) ──
    SOS_COLLECTOR_URL: str = "https://your-backend-api.com/sos"
    SOS_SEND_TIMEOUT_SECONDS: float = 5.0
    SOS_MESSAGE: str = "SOS Alert - Emergency situation"

    # ── Connectivity probe ──
    CONNECTIVITY_PROBE_URL: str = "https://clients3.google.com/generate_204"
    CONNECTIVITY_TIMEOUT_SECONDS: float = 3.0

    # ── SMS / voice ──
    SMS_PROVIDER: str = "simulation"  # simulation | twilio | none
    SMS_TIMEOUT_SECONDS: float = 10.0
    VOICE_PROVIDER: str = "simulation"  # simulation | twilio | none
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_FROM_NUMBER: Optional[str] = None
    EMERGENCY_DIAL_NUMBER: str = "112"

    # ── Location ──
    LOCATION_MAX_AGE_SECONDS: float = 300.0  # older fixes count as unavailable

    # ── Start-up ──
    RECONCILE_ON_STARTUP: bool = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
