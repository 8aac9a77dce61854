import logging
from typing import Optional

from .auth import normalize_email
from .lifecycle import SessionLifecycle
from .verification import EmailVerification

logger = logging.getLogger(__name__)


class AccountService:
    """Self-service profile reads and updates for the authenticated user."""

    def __init__(self, lifecycle: SessionLifecycle, verification: EmailVerification):
        self.lifecycle = lifecycle
        self.verification = verification
        self.users = lifecycle.users

    def me(self, user):
        return self.users.get_user(user.id)

    def update_me(
        self,
        user,
        session_id: str,
        *,
        password: Optional[str] = None,
        old_password: Optional[str] = None,
        email: Optional[str] = None,
        **profile,
    ):
        """
        Apply a profile update.

        A new password needs the old one and logs out every other session. A
        new email is only mailed a confirmation link; the stored address
        changes once that link is redeemed. A taken email rejects the whole
        update before anything is written.
        """
        new_email = None
        if email and normalize_email(email) != user.email:
            new_email = self.verification.ensure_email_available(user, email)

        if password:
            self.lifecycle.change_password(user, old_password, password, session_id)

        if new_email:
            self.verification.request_email_change(user, new_email)

        fields = {key: value for key, value in profile.items() if value is not None}
        if fields:
            self.users.update_user(user.id, **fields)
            logger.info("Profile updated: user_id=%s fields=%s", user.id, sorted(fields))

        return self.me(user)
