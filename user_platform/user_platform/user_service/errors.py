"""
Error taxonomy for the user service and the handler that renders it.

Every service-layer failure derives from ``UserServiceError`` and carries the
HTTP status it maps to, a stable ``error_code`` and an optional ``errors``
dict of field-level reasons.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(self, message: str, *, errors: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def to_dict(self) -> dict:
        return {
            "status": self.status_code,
            "error": self.error_code,
            "message": self.message,
            "errors": self.errors,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class BadRequestError(UserServiceError):
    """Malformed or unacceptable input that passed schema validation (400)."""
    status_code = 400
    error_code = "bad_request"


class UnauthorizedError(UserServiceError):
    """Missing, invalid or stale session credentials (401)."""
    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(UserServiceError):
    """Authenticated but lacking the required role (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(UserServiceError):
    """Unknown user or session reference (404)."""
    status_code = 404
    error_code = "not_found"


class ConflictError(UserServiceError):
    """Email already registered (409)."""
    status_code = 409
    error_code = "conflict"


class InvalidCredentialError(UserServiceError):
    """Wrong or missing password (422)."""
    status_code = 422
    error_code = "invalid_credential"


class InvalidOrExpiredTokenError(UserServiceError):
    """Signature or expiry failure on a signed verification token (422)."""
    status_code = 422
    error_code = "invalid_or_expired_token"


class InternalError(UserServiceError):
    """Hashing, signing or storage infrastructure failure (500)."""
    status_code = 500
    error_code = "internal_error"


class MailDeliveryError(InternalError):
    error_code = "mail_delivery_failed"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every ``UserServiceError`` as the standard JSON envelope."""

    @app.exception_handler(UserServiceError)
    async def handle_user_service_error(request: Request, exc: UserServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "%s %s -> %s %s: %s",
            request.method, request.url.path, exc.status_code, exc.error_code, exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
