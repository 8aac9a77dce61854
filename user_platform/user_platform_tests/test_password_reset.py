"""
Forgot/reset password flow through the HTTP API.
"""
from datetime import datetime, timedelta, timezone

from user_platform.user_platform.user_service.config import get_settings
from user_platform.user_platform.user_service.models import AuthEvent
from user_platform.user_platform.user_service.tokens import VerificationTokenSigner

from .conftest import bearer


def test_forgot_password_mails_reset_link(client, register_user, mailer):
    register_user()

    response = client.post("/api/v1/auth/forgot/password", json={"email": "A@X.com"})
    assert response.status_code == 204

    message = mailer.last("reset-password")
    assert message["to"] == "a@x.com"
    assert message["context"]["hash"]
    # Epoch milliseconds, in the future
    now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    assert message["context"]["token_expires"] > now_ms


def test_forgot_password_unknown_email_is_silent(client, mailer):
    response = client.post("/api/v1/auth/forgot/password", json={"email": "nobody@x.com"})
    assert response.status_code == 204
    assert mailer.sent == []


def test_reset_password_rehashes_and_ends_sessions(client, register_user, login, mailer):
    register_user()
    tokens = login()

    client.post("/api/v1/auth/forgot/password", json={"email": "a@x.com"})
    reset_hash = mailer.last("reset-password")["context"]["hash"]

    response = client.post("/api/v1/auth/reset/password", json={"hash": reset_hash, "password": "Brand-new-1"})
    assert response.status_code == 204

    # Every session is gone
    assert client.post("/api/v1/auth/refresh", headers=bearer(tokens["refresh_token"])).status_code == 401
    assert client.get("/api/v1/auth/me", headers=bearer(tokens["access_token"])).status_code == 401

    old = client.post("/api/v1/auth/email/login", json={"email": "a@x.com", "password": "Secret123"})
    assert old.status_code == 422
    login(password="Brand-new-1")


def test_reset_password_with_expired_hash(client, register_user):
    register_user()
    settings = get_settings()
    signer = VerificationTokenSigner(settings.AUTH_FORGOT_SECRET, settings.AUTH_FORGOT_TOKEN_EXPIRES_IN)
    issued_at = datetime.now(timezone.utc) - settings.AUTH_FORGOT_TOKEN_EXPIRES_IN - timedelta(minutes=1)
    expired = signer.sign({"forgot_user_id": 1}, issued_at=issued_at)

    response = client.post("/api/v1/auth/reset/password", json={"hash": expired, "password": "Brand-new-1"})
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "invalid_or_expired_token"
    assert body["errors"] == {"hash": "invalid_or_expired_hash"}


def test_reset_password_rejects_confirmation_hash(client, register_user):
    confirm_hash = register_user()
    response = client.post("/api/v1/auth/reset/password", json={"hash": confirm_hash, "password": "Brand-new-1"})
    assert response.status_code == 422


def test_reset_password_enforces_min_length(client, register_user, mailer):
    register_user()
    client.post("/api/v1/auth/forgot/password", json={"email": "a@x.com"})
    reset_hash = mailer.last("reset-password")["context"]["hash"]

    response = client.post("/api/v1/auth/reset/password", json={"hash": reset_hash, "password": "short"})
    assert response.status_code == 422


def test_reset_password_records_event(client, register_user, mailer, db_session):
    register_user()
    client.post("/api/v1/auth/forgot/password", json={"email": "a@x.com"})
    reset_hash = mailer.last("reset-password")["context"]["hash"]
    client.post("/api/v1/auth/reset/password", json={"hash": reset_hash, "password": "Brand-new-1"})

    event = db_session.query(AuthEvent).filter(AuthEvent.event_type == "password_reset").one()
    assert event.email == "a@x.com"
