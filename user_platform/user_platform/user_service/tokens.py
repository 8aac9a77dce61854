"""
JWT issuance for session tokens and purpose-bound verification tokens.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .errors import InternalError, InvalidOrExpiredTokenError, UnauthorizedError

ALGORITHM = "HS256"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _sign(payload: dict, secret: str) -> str:
    try:
        return jwt.encode(payload, secret, algorithm=ALGORITHM)
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        raise InternalError("Failed to sign token") from exc


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    # Access token expiry, epoch milliseconds
    expires_in: int

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
        }


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    session_id: str


@dataclass(frozen=True)
class RefreshClaims:
    session_id: str
    hash: str


class TokenIssuer:
    """Mints and decodes access/refresh tokens, each with its own secret and lifetime."""

    def __init__(
        self,
        access_secret: str,
        access_ttl: timedelta,
        refresh_secret: str,
        refresh_ttl: timedelta,
    ):
        self.access_secret = access_secret
        self.access_ttl = access_ttl
        self.refresh_secret = refresh_secret
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings) -> "TokenIssuer":
        return cls(
            access_secret=settings.AUTH_JWT_SECRET,
            access_ttl=settings.AUTH_JWT_TOKEN_EXPIRES_IN,
            refresh_secret=settings.AUTH_REFRESH_SECRET,
            refresh_ttl=settings.AUTH_REFRESH_TOKEN_EXPIRES_IN,
        )

    def issue(self, user_id: int, session_id: str, session_hash: str) -> TokenPair:
        now = _now()
        access_expires = now + self.access_ttl

        access_token = _sign(
            {"sub": str(user_id), "sid": session_id, "iat": now, "exp": access_expires},
            self.access_secret,
        )
        refresh_token = _sign(
            {"sid": session_id, "hash": session_hash, "iat": now, "exp": now + self.refresh_ttl},
            self.refresh_secret,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=_epoch_ms(access_expires),
        )

    def decode_access(self, token: str) -> AccessClaims:
        try:
            data = jwt.decode(token, self.access_secret, algorithms=[ALGORITHM])
            return AccessClaims(user_id=int(data["sub"]), session_id=str(data["sid"]))
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid token") from exc

    def decode_refresh(self, token: str) -> RefreshClaims:
        try:
            data = jwt.decode(token, self.refresh_secret, algorithms=[ALGORITHM])
            return RefreshClaims(session_id=str(data["sid"]), hash=str(data["hash"]))
        except (jwt.PyJWTError, KeyError, TypeError) as exc:
            raise UnauthorizedError("Invalid refresh token") from exc


class VerificationTokenSigner:
    """
    Stateless signed token for a single purpose (email confirmation, password
    reset). Purposes never share a secret, so a token cannot cross flows.
    """

    def __init__(self, secret: str, ttl: timedelta):
        self.secret = secret
        self.ttl = ttl

    def expires_at(self, issued_at: Optional[datetime] = None) -> datetime:
        return (issued_at or _now()) + self.ttl

    def sign(self, claims: dict, issued_at: Optional[datetime] = None) -> str:
        issued_at = issued_at or _now()
        payload = dict(claims, iat=issued_at, exp=self.expires_at(issued_at))
        return _sign(payload, self.secret)

    def verify(self, token: str, *required: str) -> dict:
        """
        Decode ``token`` and return its claims.

        Raises:
            InvalidOrExpiredTokenError: Bad signature, expired, or a required claim is missing
        """
        try:
            data = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except jwt.PyJWTError as exc:
            raise InvalidOrExpiredTokenError(
                "Invalid or expired hash", errors={"hash": "invalid_or_expired_hash"}
            ) from exc

        missing = [claim for claim in required if claim not in data]
        if missing:
            raise InvalidOrExpiredTokenError(
                "Invalid or expired hash", errors={"hash": "invalid_or_expired_hash"}
            )
        return data
