"""
Database session management.
"""
from typing import Callable
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from app.db.base import Base

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """Dependency for background work that must open its own session."""
    return SessionLocal


def init_db(bind=None):
    """Create all tables on `bind` (the application engine by default)."""
    # Import models so they register on Base.metadata
    import app.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
