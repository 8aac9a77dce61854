from passlib.context import CryptContext
import hashlib
import logging
import secrets

from .config import get_settings
from .errors import InternalError, InvalidCredentialError, NotFoundError

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=get_settings().AUTH_HASH_ROUNDS,
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    try:
        return pwd_context.hash(password)
    except (ValueError, TypeError) as exc:
        raise InternalError("Failed to hash password") from exc


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unrecognised or corrupt hash: treat as a mismatch
        logger.warning("Stored password hash could not be parsed")
        return False


def generate_session_hash() -> str:
    """Fresh random session secret, as a sha256 hex digest."""
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()


class CredentialVerifier:
    """Checks a claimed email/password pair against the stored hash."""

    def __init__(self, users):
        self.users = users

    def verify(self, email: str, password: str):
        """
        Return the user owning ``email`` if ``password`` matches.

        Raises:
            NotFoundError: No active user with that email
            InvalidCredentialError: No password set, or the password does not match
        """
        user = self.users.find_by_email(normalize_email(email))
        if not user or not user.is_active:
            raise NotFoundError("Email not registered", errors={"email": "email_not_exists"})

        if not user.password or not verify_password(password, user.password):
            raise InvalidCredentialError("Invalid credentials", errors={"password": "incorrect_password"})

        return user
