"""Database session management module.

Provides SQLAlchemy engine and session factories for database connectivity.
"""

from .session import get_engine, get_session, get_session_factory, session_scope

__all__ = ["get_engine", "get_session", "get_session_factory", "session_scope"]
