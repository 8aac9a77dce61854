"""
Unit tests for event logger utility.
"""
import logging
import os

import pytest
from unittest.mock import Mock, MagicMock
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from user_platform.user_platform.user_service.auth import hash_password
from user_platform.user_platform.user_service.models import AuthEvent, User
from user_platform.user_platform.user_service.utils.event_logger import (
    ALLOWED_EVENT_TYPES,
    configure_logging,
    log_auth_event,
)


@pytest.fixture
def test_user(db_session):
    """Create a test user."""
    user = User(
        email="test@example.com",
        password=hash_password("Secret123"),
        name="Test",
        last_name="User",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object."""
    request = Mock()
    request.client = Mock()
    request.client.host = "192.168.1.1"
    request.headers = {"user-agent": "Mozilla/5.0 Test Browser"}
    return request


def test_log_auth_event_creates_record(db_session, test_user, mock_request):
    """Test that log_auth_event creates a record in the database."""
    log_auth_event("login_success", mock_request, db_session, user=test_user)

    events = db_session.query(AuthEvent).filter(
        AuthEvent.user_id == test_user.id
    ).all()

    assert len(events) == 1
    assert events[0].event_type == "login_success"
    assert events[0].email == "test@example.com"
    assert events[0].timestamp is not None


def test_log_auth_event_without_user_keeps_email(db_session, mock_request):
    """Failed logins have no user, only the attempted email."""
    log_auth_event("login_failure", mock_request, db_session, email="ghost@example.com")

    event = db_session.query(AuthEvent).one()
    assert event.user_id is None
    assert event.email == "ghost@example.com"


def test_log_auth_event_extracts_ip_and_user_agent(db_session, test_user, mock_request):
    log_auth_event("login_success", mock_request, db_session, user=test_user)

    event = db_session.query(AuthEvent).first()
    assert event.ip_address == "192.168.1.1"
    assert event.user_agent == "Mozilla/5.0 Test Browser"


def test_log_auth_event_with_metadata(db_session, test_user, mock_request):
    """Test that metadata is stored correctly."""
    metadata = {"session_id": "abc123", "email_change": True}
    log_auth_event("token_refresh", mock_request, db_session, user=test_user, metadata=metadata)

    event = db_session.query(AuthEvent).first()
    assert event.event_metadata == metadata


def test_log_auth_event_invalid_type(db_session, test_user, mock_request):
    """Test that ValueError is raised for invalid event type."""
    with pytest.raises(ValueError) as exc_info:
        log_auth_event("invalid_event", mock_request, db_session, user=test_user)

    assert "Invalid event_type" in str(exc_info.value)
    assert "invalid_event" in str(exc_info.value)


def test_log_auth_event_handles_missing_ip(db_session, test_user):
    """Test that NULL is stored when IP address cannot be extracted."""
    request = Mock()
    request.client = None
    request.headers = {"user-agent": "Test Browser"}

    log_auth_event("logout", request, db_session, user=test_user)

    event = db_session.query(AuthEvent).first()
    assert event.ip_address is None
    assert event.user_agent == "Test Browser"


def test_log_auth_event_x_forwarded_for_fallback(db_session, test_user):
    """Test that X-Forwarded-For header is used as fallback for IP."""
    request = Mock()
    request.client = None
    request.headers = {
        "x-forwarded-for": "10.0.0.1, 192.168.1.1",
        "user-agent": "Test Browser"
    }

    log_auth_event("login_success", request, db_session, user=test_user)

    event = db_session.query(AuthEvent).first()
    assert event.ip_address == "10.0.0.1"  # Should take first IP


def test_log_auth_event_handles_db_error(test_user, mock_request, caplog):
    """Database errors are logged and rolled back, never raised."""
    mock_db = MagicMock(spec=Session)
    mock_db.commit = MagicMock(side_effect=SQLAlchemyError("Database error"))

    with caplog.at_level(logging.WARNING):
        log_auth_event("login_success", mock_request, mock_db, user=test_user)

    mock_db.rollback.assert_called_once()
    assert "Failed to log auth event" in caplog.text
    assert "login_success" in caplog.text


def test_log_auth_event_all_event_types(db_session, test_user, mock_request):
    """Test that all valid event types can be logged."""
    for event_type in sorted(ALLOWED_EVENT_TYPES):
        log_auth_event(event_type, mock_request, db_session, user=test_user)

    logged_types = {event.event_type for event in db_session.query(AuthEvent).all()}
    assert logged_types == ALLOWED_EVENT_TYPES


def test_configure_logging_creates_log_file(tmp_path):
    log_dir = tmp_path / "logs"

    configure_logging("DEBUG", str(log_dir))

    assert os.path.exists(log_dir / "user_service.log")


def test_auth_event_to_dict_returns_correct_structure(db_session, test_user, mock_request):
    """Test that to_dict() returns correct dictionary structure."""
    log_auth_event("login_success", mock_request, db_session, user=test_user)

    result = db_session.query(AuthEvent).first().to_dict()

    assert set(result) == {
        "id", "user_id", "email", "event_type", "ip_address", "user_agent", "timestamp", "metadata"
    }
    assert result["user_id"] == test_user.id
    assert result["email"] == "test@example.com"
    assert result["event_type"] == "login_success"
    assert isinstance(result["id"], str)


def test_auth_event_to_dict_datetime_iso8601_format(db_session, test_user, mock_request):
    """Test that datetime is converted to ISO 8601 format."""
    log_auth_event("login_success", mock_request, db_session, user=test_user)

    result = db_session.query(AuthEvent).first().to_dict()

    assert "T" in result["timestamp"]
    from datetime import datetime
    assert datetime.fromisoformat(result["timestamp"]) is not None


def test_auth_event_to_dict_null_metadata_returns_empty_dict(db_session, test_user, mock_request):
    """Test that null metadata returns empty dict."""
    log_auth_event("login_success", mock_request, db_session, user=test_user, metadata=None)

    result = db_session.query(AuthEvent).first().to_dict()
    assert result["metadata"] == {}
