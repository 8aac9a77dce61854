"""
Per-request wiring of services, and the guard chain every protected route runs
through: authenticate -> require_roles -> handler.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .account import AccountService
from .config import Settings, get_settings
from .db import get_db, utcnow
from .errors import ForbiddenError, UnauthorizedError
from .lifecycle import SessionLifecycle
from .mail import Mailer, SmtpMailer
from .models import User
from .sessions import SqlSessionStore
from .storage import StorageService
from .tokens import RefreshClaims, TokenIssuer
from .users import SqlUserStore, UsersService
from .verification import EmailVerification


# ---------------- Services ----------------

def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return SmtpMailer.from_settings(settings)


def get_storage(settings: Settings = Depends(get_settings)) -> StorageService:
    return StorageService.from_settings(settings)


def get_session_store(db: Session = Depends(get_db)) -> SqlSessionStore:
    return SqlSessionStore(db)


def get_users_service(
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> UsersService:
    return UsersService(
        SqlUserStore(db),
        storage=storage,
        photo_max_size=settings.PROFILE_PHOTO_MAX_SIZE,
        photo_allowed_types=settings.PROFILE_PHOTO_ALLOWED_TYPES,
    )


def get_lifecycle(
    users: UsersService = Depends(get_users_service),
    sessions: SqlSessionStore = Depends(get_session_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
) -> SessionLifecycle:
    return SessionLifecycle(users, sessions, issuer, settings.AUTH_JWT_TOKEN_EXPIRES_IN)


def get_verification(
    users: UsersService = Depends(get_users_service),
    sessions: SqlSessionStore = Depends(get_session_store),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
) -> EmailVerification:
    return EmailVerification.from_settings(settings, users, sessions, mailer)


def get_account_service(
    lifecycle: SessionLifecycle = Depends(get_lifecycle),
    verification: EmailVerification = Depends(get_verification),
) -> AccountService:
    return AccountService(lifecycle, verification)


# ---------------- Guards ----------------

@dataclass
class AuthContext:
    user: User
    session_id: str


def bearer_token(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthorizedError("Not authenticated")
    return authorization.split(" ", 1)[1].strip()


def authenticate(
    token: str = Depends(bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
    sessions: SqlSessionStore = Depends(get_session_store),
    users: UsersService = Depends(get_users_service),
) -> AuthContext:
    claims = issuer.decode_access(token)

    # Logged-out or invalidated sessions stop authenticating immediately
    session = sessions.find_by_id(claims.session_id)
    if not session or session.user_id != claims.user_id or session.expires < utcnow():
        raise UnauthorizedError("Session expired or revoked")

    user = users.find_by_id(claims.user_id)
    if not user:
        raise UnauthorizedError("User not found")

    return AuthContext(user=user, session_id=session.id)


def require_roles(*role_names: str):
    """Guard allowing the request through if the user holds any of ``role_names``."""

    def guard(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        if role_names and not set(role_names) & set(ctx.user.role_names):
            raise ForbiddenError("Insufficient role", errors={"roles": list(role_names)})
        return ctx

    return guard


def refresh_credentials(
    token: str = Depends(bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> RefreshClaims:
    return issuer.decode_refresh(token)
