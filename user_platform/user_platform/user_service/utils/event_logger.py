"""
Event logger utility for authentication events, plus process-wide logging setup.
"""
from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import sys
import logging
import os

from ..db import utcnow
from ..models import AuthEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENT_TYPES = {
    "register",
    "login_success",
    "login_failure",
    "token_refresh",
    "logout",
    "password_change",
    "password_reset",
    "email_confirmed",
}


def configure_logging(level: str = "INFO", log_dir: str = None) -> None:
    """
    Configure stdout logging, plus a file handler under ``log_dir`` when it
    can be created.
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    # Try to add file handler, but continue without it if directory creation fails
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(log_dir, "user_service.log")))
        except OSError as e:
            print(f"WARNING: Could not set up file logging: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def client_ip(request: Request):
    ip_address = None
    if request.client:
        ip_address = request.client.host

    # Check for X-Forwarded-For header (proxy/load balancer scenarios)
    if not ip_address and request.headers.get("x-forwarded-for"):
        # X-Forwarded-For can contain multiple IPs, take the first one
        ip_address = request.headers.get("x-forwarded-for").split(",")[0].strip()

    return ip_address


def log_auth_event(
    event_type: str,
    request: Request,
    db: Session,
    user=None,
    email: str = None,
    metadata: dict = None
) -> None:
    """
    Log an authentication event to the database.

    Args:
        event_type: One of ALLOWED_EVENT_TYPES
        request: FastAPI Request object
        db: Database session
        user: User the event concerns, if known
        email: Email the event concerns when there is no user (failed login)
        metadata: Optional dictionary of additional context

    Raises:
        ValueError: If event_type is invalid
    """
    if event_type not in ALLOWED_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type '{event_type}'. Must be one of: {', '.join(sorted(ALLOWED_EVENT_TYPES))}"
        )

    ip_address = client_ip(request)
    user_agent = request.headers.get("user-agent")
    user_id = user.id if user is not None else None
    email = user.email if user is not None else email

    try:
        auth_event = AuthEvent(
            user_id=user_id,
            email=email,
            event_type=event_type,
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=utcnow(),
            event_metadata=metadata or {}
        )

        db.add(auth_event)
        db.commit()

        logger.info("AUTH %s user_id=%s ip=%s", event_type, user_id, ip_address)

    except SQLAlchemyError as e:
        # Log error but don't raise - logging failure should not break auth flow
        logger.warning(
            "Failed to log auth event - user_id=%s, event_type=%s, error=%s",
            user_id, event_type, e,
        )
        db.rollback()
