"""
Database engine, session factory, and transaction helpers.

Repositories receive the request's Session. A mutating repository call either
commits on its own (commit=True, the plain-handle mode) or only flushes
(commit=False) so that a caller holding `transaction(db)` can group several
statements into one atomic unit.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_recycle": settings.DB_POOL_RECYCLE_SECONDS,
        "connect_args": {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS},
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one Session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Run a block of repository calls atomically.

    Commits when the block finishes, rolls back and re-raises on any error.

    Example:
        >>> with transaction(db):
        ...     teams.create(team, commit=False)
        ...     members.add(team.id, user_id, "owner", commit=False)
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("Rolling back transaction")
        db.rollback()
        raise


def ping_database() -> None:
    """Run SELECT 1 against the engine; raises on failure."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection verified")
