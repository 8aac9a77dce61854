"""
In-memory stores with the same contract as the SQL ones, used for unit tests
and local experiments. Records are transient ORM instances.
"""
from datetime import datetime
from itertools import count
from typing import Dict, Iterable, List, Optional
import uuid

from .db import utcnow
from .errors import NotFoundError
from .models import Role, User, UserSession


class InMemoryUserStore:
    def __init__(self):
        self._users: Dict[int, User] = {}
        self._roles: Dict[str, Role] = {}
        self._ids = count(1)

    def _role(self, name: str) -> Role:
        if name not in self._roles:
            self._roles[name] = Role(id=len(self._roles) + 1, name=name)
        return self._roles[name]

    def find_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.email == email), None)

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def create(self, *, role_names: Iterable[str] = ("user",), **fields) -> User:
        now = utcnow()
        user = User(id=next(self._ids), created_at=now, updated_at=now, **fields)
        user.roles = [self._role(name) for name in role_names]
        self._users[user.id] = user
        return user

    def update(self, user_id: int, **fields) -> User:
        user = self._users.get(user_id)
        if not user:
            raise NotFoundError("User not found", errors={"user": "not_found"})
        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
        return user

    def search(self, exclude_user_id: Optional[int], query: str = "", limit: int = 50) -> List[User]:
        needle = query.lower()
        matches = [
            u for u in self._users.values()
            if u.deleted_at is None
            and u.id != exclude_user_id
            and (not needle or any(needle in (value or "").lower() for value in (u.email, u.name, u.last_name)))
        ]
        matches.sort(key=lambda u: (u.created_at, u.id), reverse=True)
        return matches[:limit]


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, UserSession] = {}

    def create(self, user_id: int, session_token: str, expires: datetime) -> UserSession:
        now = utcnow()
        session = UserSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            session_token=session_token,
            expires=expires,
            created_at=now,
            updated_at=now,
        )
        self._sessions[session.id] = session
        return session

    def find_by_id(self, session_id: str) -> Optional[UserSession]:
        return self._sessions.get(session_id)

    def find_all_by_user(self, user_id: int) -> List[UserSession]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    def update(self, session_id: str, **fields) -> UserSession:
        session = self._sessions.get(session_id)
        if not session:
            raise NotFoundError("Session not found", errors={"session": "not_found"})
        for key, value in fields.items():
            setattr(session, key, value)
        session.updated_at = utcnow()
        return session

    def delete_by_id(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def delete_all_for_user(self, user_id: int, exclude_session_id: Optional[str] = None) -> int:
        doomed = [
            sid for sid, s in self._sessions.items()
            if s.user_id == user_id and sid != exclude_session_id
        ]
        for sid in doomed:
            del self._sessions[sid]
        return len(doomed)
