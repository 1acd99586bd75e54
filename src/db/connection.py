"""
Database connection management.
"""
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.config.settings import get_settings
from src.db.models import Base


@lru_cache
def get_engine() -> Engine:
    """Get cached database engine."""
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        return create_engine(settings.database_url)
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """Get cached session factory."""
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_session() -> Session:
    """Create a new database session."""
    factory = get_session_factory()
    return factory()


@contextmanager
def get_db_session(session_factory: sessionmaker[Session] | None = None):
    """Context manager for database sessions with automatic cleanup."""
    session = session_factory() if session_factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create the credentials table and its partial indexes if missing."""
    Base.metadata.create_all(bind=engine or get_engine())
