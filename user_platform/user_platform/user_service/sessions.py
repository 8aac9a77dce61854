"""
Session persistence. The lifecycle coordinator only touches session rows
through a ``SessionStore``.
"""
from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from .errors import NotFoundError
from .models import UserSession


class SessionStore(Protocol):
    def create(self, user_id: int, session_token: str, expires: datetime) -> UserSession: ...

    def find_by_id(self, session_id: str) -> Optional[UserSession]: ...

    def find_all_by_user(self, user_id: int) -> List[UserSession]: ...

    def update(self, session_id: str, **fields) -> UserSession: ...

    def delete_by_id(self, session_id: str) -> bool: ...

    def delete_all_for_user(self, user_id: int, exclude_session_id: Optional[str] = None) -> int: ...


class SqlSessionStore:
    """SQLAlchemy-backed session store; every call commits its own row change."""

    UPDATABLE_FIELDS = {"session_token", "access_token", "refresh_token", "expires", "expires_at"}

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, session_token: str, expires: datetime) -> UserSession:
        session = UserSession(user_id=user_id, session_token=session_token, expires=expires)
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def find_by_id(self, session_id: str) -> Optional[UserSession]:
        return self.db.query(UserSession).filter(UserSession.id == session_id).first()

    def find_all_by_user(self, user_id: int) -> List[UserSession]:
        return (
            self.db.query(UserSession)
            .filter(UserSession.user_id == user_id)
            .order_by(UserSession.created_at.asc())
            .all()
        )

    def update(self, session_id: str, **fields) -> UserSession:
        unknown = set(fields) - self.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {', '.join(sorted(unknown))}")

        session = self.find_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found", errors={"session": "not_found"})

        for key, value in fields.items():
            setattr(session, key, value)
        self.db.commit()
        self.db.refresh(session)
        return session

    def delete_by_id(self, session_id: str) -> bool:
        deleted = self.db.query(UserSession).filter(UserSession.id == session_id).delete()
        self.db.commit()
        return deleted > 0

    def delete_all_for_user(self, user_id: int, exclude_session_id: Optional[str] = None) -> int:
        query = self.db.query(UserSession).filter(UserSession.user_id == user_id)
        if exclude_session_id is not None:
            query = query.filter(UserSession.id != exclude_session_id)
        deleted = query.delete(synchronize_session=False)
        self.db.commit()
        return deleted
