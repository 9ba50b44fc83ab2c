"""
Database module for pulseh2h.

Provides SQLAlchemy ORM models and session management.

Usage:
    from pulseh2h.db import create_db_engine, create_session_factory, session_scope

    factory = create_session_factory(create_db_engine(url))
    with session_scope(factory) as session:
        session.query(CustomMatch).count()
"""

from pulseh2h.db.models import Base, CustomMatch, ProcessedMatchId
from pulseh2h.db.session import (
    create_db_engine,
    create_session_factory,
    create_tables,
    describe_engine,
    session_scope,
)

__all__ = [
    # Base
    "Base",
    # Models
    "CustomMatch",
    "ProcessedMatchId",
    # Session
    "create_db_engine",
    "create_session_factory",
    "create_tables",
    "describe_engine",
    "session_scope",
]
