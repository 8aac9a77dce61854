"""
Session lifecycle: login, refresh-token rotation, logout and invalidation of
sibling sessions after a password change.

A session is Active once created, Rotated (same id, new secret and expiry) on
each refresh, and Terminated when its row is deleted. A deleted session is
never brought back.
"""
import logging
from datetime import timedelta
from typing import Optional

from .auth import CredentialVerifier, generate_session_hash, verify_password
from .db import utcnow
from .errors import InvalidCredentialError, UnauthorizedError
from .sessions import SessionStore
from .tokens import TokenIssuer
from .users import UsersService

logger = logging.getLogger(__name__)


def user_projection(user) -> dict:
    return {
        "name": user.name,
        "last_name": user.last_name,
        "email": user.email,
        "image": user.image,
    }


class SessionLifecycle:
    def __init__(
        self,
        users: UsersService,
        sessions: SessionStore,
        issuer: TokenIssuer,
        session_ttl: timedelta,
    ):
        self.users = users
        self.sessions = sessions
        self.issuer = issuer
        self.session_ttl = session_ttl
        self.verifier = CredentialVerifier(users.users)

    def login(self, email: str, password: str) -> dict:
        user = self.verifier.verify(email, password)

        session_hash = generate_session_hash()
        session = self.sessions.create(
            user_id=user.id,
            session_token=session_hash,
            expires=utcnow() + self.session_ttl,
        )

        tokens = self.issuer.issue(user.id, session.id, session_hash)

        # Not one transaction with create(): a failure here leaves a row without tokens
        self.sessions.update(
            session.id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_in,
        )

        logger.info("Login: user_id=%s session_id=%s", user.id, session.id)
        return dict(tokens.to_dict(), user=user_projection(user))

    def refresh(self, session_id: str, presented_hash: str) -> dict:
        session = self.sessions.find_by_id(session_id)
        if not session:
            raise UnauthorizedError("Session not found")

        # Left behind by a login that failed between create() and update()
        if not session.refresh_token:
            raise UnauthorizedError("Session was never issued tokens")

        # Only the most recently issued refresh token carries the current secret
        if session.session_token != presented_hash:
            logger.warning("Refresh with stale session secret: session_id=%s", session_id)
            raise UnauthorizedError("Refresh token already used")

        user = self.users.find_by_id(session.user_id)
        if not user:
            raise UnauthorizedError("User no longer exists")

        new_hash = generate_session_hash()
        tokens = self.issuer.issue(user.id, session.id, new_hash)
        self.sessions.update(
            session.id,
            session_token=new_hash,
            expires=utcnow() + self.session_ttl,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_in,
        )

        logger.info("Refresh: user_id=%s session_id=%s", user.id, session.id)
        return tokens.to_dict()

    def logout(self, session_id: str) -> None:
        if not self.sessions.delete_by_id(session_id):
            logger.info("Logout for unknown session_id=%s", session_id)
            return
        logger.info("Logout: session_id=%s", session_id)

    def change_password(self, user, old_password: Optional[str], new_password: str, session_id: str):
        """
        Replace the password after checking the old one, then drop every other
        session of the user.
        """
        if not old_password:
            raise InvalidCredentialError("Old password required", errors={"old_password": "missing_old_password"})

        if not user.password or not verify_password(old_password, user.password):
            raise InvalidCredentialError("Incorrect old password", errors={"old_password": "incorrect_old_password"})

        updated = self.users.update_user(user.id, password=new_password)
        purged = self.invalidate_other_sessions(user.id, session_id)
        logger.info("Password changed: user_id=%s sessions_purged=%s", user.id, purged)
        return updated

    def invalidate_other_sessions(self, user_id: int, keep_session_id: Optional[str]) -> int:
        return self.sessions.delete_all_for_user(user_id, exclude_session_id=keep_session_id)
