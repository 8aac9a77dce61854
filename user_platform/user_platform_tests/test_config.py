from datetime import timedelta

import pytest
from pydantic import ValidationError

from user_platform.user_platform.user_service.config import Settings, parse_duration
from user_platform.user_platform.user_service.storage import StorageService


@pytest.mark.parametrize("raw, expected", [
    ("15m", timedelta(minutes=15)),
    ("1h", timedelta(hours=1)),
    ("7d", timedelta(days=7)),
    ("2w", timedelta(weeks=2)),
    ("500ms", timedelta(milliseconds=500)),
    ("90", timedelta(seconds=90)),
    (30, timedelta(seconds=30)),
])
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "10y", "0", "-5m"])
def test_parse_duration_rejects(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_settings_parse_token_lifetimes():
    settings = Settings(_env_file=None, AUTH_JWT_TOKEN_EXPIRES_IN="1h", AUTH_FORGOT_TOKEN_EXPIRES_IN="45m")

    assert settings.AUTH_JWT_TOKEN_EXPIRES_IN == timedelta(hours=1)
    assert settings.AUTH_FORGOT_TOKEN_EXPIRES_IN == timedelta(minutes=45)


def test_settings_require_every_secret(monkeypatch):
    monkeypatch.delenv("AUTH_FORGOT_SECRET", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_settings_reject_shared_secrets():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, AUTH_REFRESH_SECRET=Settings(_env_file=None).AUTH_JWT_SECRET)


def test_settings_reject_empty_secret():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, AUTH_CONFIRM_EMAIL_SECRET="")


def test_settings_check_compression_quality():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, IMAGE_COMPRESSION_QUALITY=100)


def test_settings_are_frozen():
    settings = Settings(_env_file=None)
    with pytest.raises(ValidationError):
        settings.DEV_MODE = True


def test_storage_urls_default_to_backend_domain():
    settings = Settings(_env_file=None, BACKEND_DOMAIN="https://api.example.com")
    assert StorageService.from_settings(settings).base_url == "https://api.example.com"

    override = Settings(_env_file=None, BACKEND_DOMAIN="https://api.example.com", STORAGE_BASE_URL="https://cdn.example.com/")
    assert StorageService.from_settings(override).base_url == "https://cdn.example.com"
