import os
import tempfile

# Settings are read once at import time, so the environment is prepared first
_TMP_DIR = tempfile.mkdtemp(prefix="user_platform_tests_")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}")
os.environ.setdefault("UPLOAD_PATH", os.path.join(_TMP_DIR, "uploads"))
os.environ.setdefault("AUTH_JWT_SECRET", "test-access-secret-5f0c2b7e9a1d4c3b8e6f")
os.environ.setdefault("AUTH_REFRESH_SECRET", "test-refresh-secret-8d2a6c4e1b9f7a3c5e0d")
os.environ.setdefault("AUTH_FORGOT_SECRET", "test-forgot-secret-3b7e1d9c5a2f8e4b6c0a")
os.environ.setdefault("AUTH_CONFIRM_EMAIL_SECRET", "test-confirm-secret-9c4f2a8e6b1d3f7a5c0e")
os.environ.setdefault("AUTH_HASH_ROUNDS", "1000")

import pytest
from fastapi.testclient import TestClient

from user_platform.user_platform.user_service.db import Base, SessionLocal, engine, init_db, seed_admin
from user_platform.user_platform.user_service.dependencies import get_mailer
from user_platform.user_platform.user_service.main import app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminSecret1"


class RecordingMailer:
    """Mailer that keeps every message instead of sending it."""

    def __init__(self):
        self.sent = []

    def send(self, to, purpose, context):
        self.sent.append({"to": to, "purpose": purpose, "context": dict(context)})

    def last(self, purpose):
        for message in reversed(self.sent):
            if message["purpose"] == purpose:
                return message
        raise AssertionError(f"no '{purpose}' mail was sent")


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    init_db()


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def mailer():
    recorder = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_mailer, None)


@pytest.fixture
def register_user(client, mailer):
    """Register through the API and return the confirmation hash that was mailed."""

    def _register(email="a@x.com", password="Secret123", name="Ada", last_name="Lovelace"):
        response = client.post(
            "/api/v1/auth/email/register",
            json={"email": email, "password": password, "name": name, "last_name": last_name},
        )
        assert response.status_code == 204, response.text
        return mailer.last("activation")["context"]["hash"]

    return _register


@pytest.fixture
def login(client):
    def _login(email="a@x.com", password="Secret123"):
        response = client.post("/api/v1/auth/email/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
def admin_tokens(db_session, login):
    seed_admin(db_session, ADMIN_EMAIL, ADMIN_PASSWORD)
    return login(ADMIN_EMAIL, ADMIN_PASSWORD)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
