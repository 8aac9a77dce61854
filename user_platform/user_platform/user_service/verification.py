"""
Email verification workflow: registration with email confirmation, email
change confirmation and password reset. Each purpose is a (sign, verify)
pair over its own secret.
"""
from datetime import datetime, timezone
import logging

from .auth import normalize_email
from .db import utcnow
from .errors import ConflictError, InvalidOrExpiredTokenError, NotFoundError
from .mail import Mailer
from .sessions import SessionStore
from .tokens import VerificationTokenSigner
from .users import UsersService

logger = logging.getLogger(__name__)


class EmailVerification:
    def __init__(
        self,
        users: UsersService,
        sessions: SessionStore,
        mailer: Mailer,
        confirm_signer: VerificationTokenSigner,
        forgot_signer: VerificationTokenSigner,
    ):
        self.users = users
        self.sessions = sessions
        self.mailer = mailer
        self.confirm_signer = confirm_signer
        self.forgot_signer = forgot_signer

    @classmethod
    def from_settings(cls, settings, users, sessions, mailer) -> "EmailVerification":
        return cls(
            users=users,
            sessions=sessions,
            mailer=mailer,
            confirm_signer=VerificationTokenSigner(
                settings.AUTH_CONFIRM_EMAIL_SECRET, settings.AUTH_CONFIRM_EMAIL_TOKEN_EXPIRES_IN
            ),
            forgot_signer=VerificationTokenSigner(
                settings.AUTH_FORGOT_SECRET, settings.AUTH_FORGOT_TOKEN_EXPIRES_IN
            ),
        )

    # ---------------- Confirm email ----------------

    def register(self, email: str, password: str, name=None, last_name=None):
        user = self.users.create_user(email, password, name=name, last_name=last_name)

        token = self.confirm_signer.sign({"confirm_email_user_id": user.id})
        # Delivery failures surface to the caller; the user row is already committed
        self.mailer.send(user.email, "activation", {"hash": token})
        return user

    def confirm_email(self, token: str):
        claims = self.confirm_signer.verify(token, "confirm_email_user_id")
        # Email-change links share the confirm secret but must not verify the current address
        if "new_email" in claims:
            raise InvalidOrExpiredTokenError(
                "Invalid or expired hash", errors={"hash": "invalid_or_expired_hash"}
            )

        user = self.users.find_by_id(claims["confirm_email_user_id"])
        if not user or user.email_verified is not None:
            raise NotFoundError("No unverified user for this hash", errors={"hash": "not_found"})

        user = self.users.update_user(user.id, email_verified=utcnow())
        logger.info("Email confirmed: user_id=%s", user.id)
        return user

    # ---------------- Confirm new email ----------------

    def ensure_email_available(self, user, new_email: str) -> str:
        """Return the normalized address, or raise Conflict if another account owns it."""
        new_email = normalize_email(new_email)
        owner = self.users.users.find_by_email(new_email)
        if owner and owner.id != user.id:
            raise ConflictError("Email already registered", errors={"email": "email_exists"})
        return new_email

    def request_email_change(self, user, new_email: str) -> None:
        new_email = self.ensure_email_available(user, new_email)

        token = self.confirm_signer.sign({"confirm_email_user_id": user.id, "new_email": new_email})
        self.mailer.send(new_email, "confirm-new-email", {"hash": token})
        logger.info("Email change requested: user_id=%s", user.id)

    def confirm_new_email(self, token: str):
        claims = self.confirm_signer.verify(token, "confirm_email_user_id", "new_email")

        user = self.users.find_by_id(claims["confirm_email_user_id"])
        if not user:
            raise NotFoundError("User not found", errors={"user": "not_found"})

        # update_user re-checks that nobody claimed the address meanwhile
        user = self.users.update_user(user.id, email=claims["new_email"], email_verified=None)
        logger.info("Email changed: user_id=%s", user.id)
        return user

    # ---------------- Reset password ----------------

    def forgot_password(self, email: str) -> None:
        user = self.users.find_by_email(email)
        if not user:
            # Same outcome as for a known address to prevent user enumeration
            logger.info("Password reset requested for unknown email")
            return

        issued_at = datetime.now(timezone.utc)
        token = self.forgot_signer.sign({"forgot_user_id": user.id}, issued_at=issued_at)
        token_expires = int(self.forgot_signer.expires_at(issued_at).timestamp() * 1000)

        self.mailer.send(user.email, "reset-password", {"hash": token, "token_expires": token_expires})
        logger.info("Password reset requested: user_id=%s", user.id)

    def reset_password(self, token: str, password: str):
        claims = self.forgot_signer.verify(token, "forgot_user_id")

        user = self.users.find_by_id(claims["forgot_user_id"])
        if not user:
            raise NotFoundError("User not found", errors={"hash": "not_found"})

        user = self.users.update_user(user.id, password=password)
        purged = self.sessions.delete_all_for_user(user.id)
        logger.info("Password reset: user_id=%s sessions_purged=%s", user.id, purged)
        return user
