from datetime import datetime, timezone
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

DEFAULT_ROLES = {
    "admin": "Administrator with access to user management",
    "user": "Regular account holder",
}


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db():
    from .models import Role  # Import here to avoid circular dependency

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        existing = {name for (name,) in db.query(Role.name).all()}
        for name, description in DEFAULT_ROLES.items():
            if name not in existing:
                db.add(Role(name=name, description=description))
        db.commit()

        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            seed_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        db.close()


def seed_admin(db, email: str, password: str):
    """Create the bootstrap administrator if no user owns ``email`` yet."""
    from .auth import hash_password, normalize_email
    from .models import Role, User

    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        return None

    admin = User(
        email=email,
        password=hash_password(password),
        name="Admin",
        last_name="System",
        email_verified=utcnow(),
        roles=db.query(Role).filter(Role.name.in_(["admin", "user"])).all(),
    )
    db.add(admin)
    db.commit()
    logger.info("Seeded bootstrap administrator %s", admin.id)
    return admin


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
