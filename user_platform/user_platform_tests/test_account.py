"""
Self-service profile updates over the in-memory stores.
"""
from datetime import timedelta

import pytest

from user_platform.user_platform.user_service.account import AccountService
from user_platform.user_platform.user_service.auth import verify_password
from user_platform.user_platform.user_service.errors import ConflictError, NotFoundError
from user_platform.user_platform.user_service.lifecycle import SessionLifecycle
from user_platform.user_platform.user_service.memory import InMemorySessionStore, InMemoryUserStore
from user_platform.user_platform.user_service.tokens import TokenIssuer, VerificationTokenSigner
from user_platform.user_platform.user_service.users import UsersService
from user_platform.user_platform.user_service.verification import EmailVerification

from .conftest import RecordingMailer


@pytest.fixture
def outbox():
    return RecordingMailer()


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def users():
    service = UsersService(InMemoryUserStore())
    service.create_user("a@x.com", "Secret123", name="Ada")
    service.create_user("b@x.com", "Secret123", name="Bea")
    return service


@pytest.fixture
def lifecycle(users, sessions):
    issuer = TokenIssuer(
        access_secret="unit-access-secret-0123456789abcdef",
        access_ttl=timedelta(minutes=15),
        refresh_secret="unit-refresh-secret-0123456789abcdef",
        refresh_ttl=timedelta(days=7),
    )
    return SessionLifecycle(users, sessions, issuer, timedelta(minutes=15))


@pytest.fixture
def account(lifecycle, users, sessions, outbox):
    verification = EmailVerification(
        users,
        sessions,
        outbox,
        VerificationTokenSigner("unit-confirm-secret-0123456789abcdef", timedelta(days=1)),
        VerificationTokenSigner("unit-forgot-secret-0123456789abcdef", timedelta(minutes=30)),
    )
    return AccountService(lifecycle, verification)


def test_me_returns_current_record(account, users):
    user = users.find_by_email("a@x.com")
    users.update_user(user.id, bio="Analyst")

    assert account.me(user).bio == "Analyst"


def test_me_for_deleted_user(account, users):
    user = users.find_by_email("a@x.com")
    users.delete_user(user.id)

    with pytest.raises(NotFoundError):
        account.me(user)


def test_update_me_profile_fields_skip_none(account, users):
    user = users.find_by_email("a@x.com")

    updated = account.update_me(user, "sid", name="Augusta", last_name=None)

    assert updated.name == "Augusta"
    assert updated.last_name is None


def test_taken_email_rejects_password_change(account, users, sessions, outbox):
    user = users.find_by_email("a@x.com")
    account.lifecycle.login("a@x.com", "Secret123")

    with pytest.raises(ConflictError):
        account.update_me(user, "sid", password="NewSecret1", old_password="Secret123", email="B@X.com")

    assert verify_password("Secret123", users.find_by_email("a@x.com").password)
    assert len(sessions.find_all_by_user(user.id)) == 1
    assert outbox.sent == []


def test_same_email_is_not_a_change_request(account, users, outbox):
    user = users.find_by_email("a@x.com")

    account.update_me(user, "sid", email=" A@x.com ")

    assert outbox.sent == []
