"""
User persistence and the user-management operations built on it.
"""
import logging
from typing import Iterable, List, Optional, Protocol
from urllib.parse import quote

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .auth import hash_password, normalize_email
from .db import utcnow
from .errors import BadRequestError, ConflictError, NotFoundError
from .models import Role, User

logger = logging.getLogger(__name__)

PROFILE_PHOTO_FOLDER = "profile-photos"
MAX_LIST_LIMIT = 50


class UserStore(Protocol):
    def find_by_email(self, email: str) -> Optional[User]: ...

    def find_by_id(self, user_id: int) -> Optional[User]: ...

    def create(self, *, role_names: Iterable[str] = ("user",), **fields) -> User: ...

    def update(self, user_id: int, **fields) -> User: ...

    def search(self, exclude_user_id: Optional[int], query: str = "", limit: int = MAX_LIST_LIMIT) -> List[User]: ...


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def create(self, *, role_names: Iterable[str] = ("user",), **fields) -> User:
        user = User(**fields)
        user.roles = self.db.query(Role).filter(Role.name.in_(list(role_names))).all()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update(self, user_id: int, **fields) -> User:
        user = self.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", errors={"user": "not_found"})
        for key, value in fields.items():
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def search(self, exclude_user_id: Optional[int], query: str = "", limit: int = MAX_LIST_LIMIT) -> List[User]:
        q = self.db.query(User).filter(User.deleted_at.is_(None))
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if query:
            pattern = f"%{query.lower()}%"
            q = q.filter(or_(
                User.email.ilike(pattern),
                User.name.ilike(pattern),
                User.last_name.ilike(pattern),
            ))
        return q.order_by(User.created_at.desc(), User.id.desc()).limit(limit).all()


def default_avatar_url(name: Optional[str]) -> str:
    initials = "".join(segment[0] for segment in (name or "").split() if segment).upper()
    return f"https://ui-avatars.com/api/?name={quote(initials)}&color=7F9CF5&background=EBF4FF"


class UsersService:
    """User-management operations. The only place a password is hashed on write."""

    UPDATABLE_FIELDS = {"email", "password", "name", "last_name", "bio", "image", "email_verified"}

    def __init__(self, users: UserStore, storage=None, photo_max_size: int = 2 * 1024 * 1024,
                 photo_allowed_types: Iterable[str] = ("image/jpeg", "image/png")):
        self.users = users
        self.storage = storage
        self.photo_max_size = photo_max_size
        self.photo_allowed_types = set(photo_allowed_types)

    def find_by_id(self, user_id: int) -> Optional[User]:
        user = self.users.find_by_id(user_id)
        return user if user and user.is_active else None

    def find_by_email(self, email: str) -> Optional[User]:
        user = self.users.find_by_email(normalize_email(email))
        return user if user and user.is_active else None

    def get_user(self, user_id: int) -> User:
        user = self.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", errors={"user": "not_found"})
        return user

    def create_user(self, email: str, password: str, name: Optional[str] = None,
                    last_name: Optional[str] = None, bio: Optional[str] = None,
                    role_names: Iterable[str] = ("user",)) -> User:
        email = normalize_email(email)
        # Soft-deleted accounts keep their address
        if self.users.find_by_email(email):
            raise ConflictError("Email already registered", errors={"email": "email_exists"})

        user = self.users.create(
            email=email,
            password=hash_password(password),
            name=name,
            last_name=last_name,
            bio=bio,
            role_names=role_names,
        )
        logger.info("User created: user_id=%s", user.id)
        return user

    def list_users(self, exclude_user_id: Optional[int], query: str = "", limit: int = 10) -> List[User]:
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        return self.users.search(exclude_user_id, query.strip(), limit)

    def update_user(self, user_id: int, **fields) -> User:
        unknown = set(fields) - self.UPDATABLE_FIELDS
        if unknown:
            raise BadRequestError(
                "Unknown user fields", errors={field: "not_updatable" for field in sorted(unknown)}
            )

        if fields.get("email") is not None:
            fields["email"] = normalize_email(fields["email"])
            owner = self.users.find_by_email(fields["email"])
            if owner and owner.id != user_id:
                raise ConflictError("Email already registered", errors={"email": "email_exists"})

        if fields.get("password") is not None:
            fields["password"] = hash_password(fields["password"])

        logger.info("Updating user_id=%s fields=%s", user_id, sorted(fields))
        return self.users.update(user_id, **fields)

    def delete_user(self, user_id: int) -> bool:
        self.get_user(user_id)
        user = self.users.update(user_id, deleted_at=utcnow())
        logger.info("User soft-deleted: user_id=%s", user_id)
        return user.deleted_at is not None

    def update_profile_photo(self, user_id: int, content_type: str, filename: str, data: bytes) -> User:
        if content_type not in self.photo_allowed_types:
            raise BadRequestError(
                "Invalid file type for profile photo",
                errors={"file": f"allowed types: {', '.join(sorted(self.photo_allowed_types))}"},
            )
        if len(data) > self.photo_max_size:
            raise BadRequestError(
                "File size exceeds maximum allowed for profile photos",
                errors={"file": f"max size is {self.photo_max_size} bytes"},
            )

        user = self.get_user(user_id)
        previous = user.image

        path = self.storage.save_file(data, filename, PROFILE_PHOTO_FOLDER, content_type)
        user = self.users.update(user_id, image=path)
        if previous:
            self.storage.delete_file(previous)

        logger.info("Profile photo updated for user_id=%s", user_id)
        return user

    def delete_profile_photo(self, user_id: int) -> None:
        user = self.get_user(user_id)
        if not user.image:
            logger.info("No profile photo to delete for user_id=%s", user_id)
            return

        self.storage.delete_file(user.image)
        self.users.update(user_id, image=None)
        logger.info("Profile photo deleted for user_id=%s", user_id)

    def profile_photo_url(self, user_id: int) -> str:
        user = self.get_user(user_id)
        if user.image:
            return self.storage.file_url(user.image)
        return default_avatar_url(user.name)
