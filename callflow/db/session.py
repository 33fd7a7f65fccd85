"""Database session management utilities.

Provides the cached engine, a session factory and the scoped session helper
each pipeline worker uses to own exactly one session per call job.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from callflow.config import get_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create and cache a SQLAlchemy engine.

    Returns:
        Engine: SQLAlchemy engine configured with the database URL
            from settings and connection pool health checks enabled.
    """
    settings = get_settings()
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.WORKER_CONCURRENCY,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    """Return the process-wide session factory bound to the cached engine."""
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_session() -> Session:
    """Create a new database session.

    Returns:
        Session: A new SQLAlchemy session bound to the cached engine.
    """
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a session that is always closed, even when the job fails.

    Commits are issued by the repositories after every pipeline step, so
    this helper only guarantees cleanup; it never commits on the caller's
    behalf.

    Yields:
        Session: A SQLAlchemy session for a single unit of work.
    """
    session = get_session()
    try:
        yield session
    finally:
        session.close()
