"""
Configuration management for the user service
"""
import re
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_duration(value) -> timedelta:
    """
    Parse a duration written as ``30s``, ``15m``, ``1h``, ``7d`` or a bare
    number of seconds.

    Raises:
        ValueError: If the value cannot be parsed or is not positive
    """
    if isinstance(value, timedelta):
        duration = value
    elif isinstance(value, (int, float)):
        duration = timedelta(seconds=value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ValueError(f"Invalid duration '{value}'")
        amount, unit = match.groups()
        duration = int(amount) * _DURATION_UNITS[unit or "s"]

    if duration <= timedelta(0):
        raise ValueError(f"Duration must be positive, got '{value}'")
    return duration


class Settings(BaseSettings):
    """User service configuration loaded from environment variables"""

    # Application
    APP_NAME: str = "User Platform"
    ENVIRONMENT: str = "development"
    API_PREFIX: str = "/api/v1"
    FRONTEND_DOMAIN: str = "http://localhost:3000"
    BACKEND_DOMAIN: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = ["*"]
    DEV_MODE: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Database
    DATABASE_URL: str = "sqlite:///./app.db"

    # Auth secrets have no defaults: a missing secret must stop the process at startup
    AUTH_JWT_SECRET: str
    AUTH_JWT_TOKEN_EXPIRES_IN: timedelta = timedelta(minutes=15)
    AUTH_REFRESH_SECRET: str
    AUTH_REFRESH_TOKEN_EXPIRES_IN: timedelta = timedelta(days=3650)
    AUTH_FORGOT_SECRET: str
    AUTH_FORGOT_TOKEN_EXPIRES_IN: timedelta = timedelta(minutes=30)
    AUTH_CONFIRM_EMAIL_SECRET: str
    AUTH_CONFIRM_EMAIL_TOKEN_EXPIRES_IN: timedelta = timedelta(days=1)
    AUTH_HASH_ROUNDS: int = 29000

    # Mail
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    MAIL_FROM: Optional[str] = None
    MAIL_FROM_NAME: str = "User Platform"

    # Storage
    UPLOAD_PATH: str = "uploads"
    # Falls back to BACKEND_DOMAIN
    STORAGE_BASE_URL: Optional[str] = None
    PROFILE_PHOTO_MAX_SIZE: int = 2 * 1024 * 1024
    PROFILE_PHOTO_ALLOWED_TYPES: List[str] = ["image/jpeg", "image/png"]
    ENABLE_IMAGE_COMPRESSION: bool = False
    IMAGE_COMPRESSION_QUALITY: int = 80

    # Bootstrap administrator
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        frozen=True,
    )

    @field_validator(
        "AUTH_JWT_TOKEN_EXPIRES_IN",
        "AUTH_REFRESH_TOKEN_EXPIRES_IN",
        "AUTH_FORGOT_TOKEN_EXPIRES_IN",
        "AUTH_CONFIRM_EMAIL_TOKEN_EXPIRES_IN",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value):
        return parse_duration(value)

    @field_validator("IMAGE_COMPRESSION_QUALITY")
    @classmethod
    def _check_quality(cls, value: int) -> int:
        if not 1 <= value <= 95:
            raise ValueError("IMAGE_COMPRESSION_QUALITY must be between 1 and 95")
        return value

    @model_validator(mode="after")
    def _check_distinct_secrets(self):
        secrets = [
            self.AUTH_JWT_SECRET,
            self.AUTH_REFRESH_SECRET,
            self.AUTH_FORGOT_SECRET,
            self.AUTH_CONFIRM_EMAIL_SECRET,
        ]
        if any(not secret for secret in secrets):
            raise ValueError("Auth signing secrets must not be empty")
        if len(set(secrets)) != len(secrets):
            raise ValueError("Each auth signing secret must be distinct")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build the settings once per process."""
    return Settings()
