"""
Database session management for pulseh2h.

Provides the SQLAlchemy engine and session factory. Nothing here is a module
level singleton: the composition root (orchestrator.build_orchestrator) builds
one engine and one sessionmaker and hands the factory to the components that
own persisted state.

Usage:
    engine = create_db_engine(settings.database_url)
    factory = create_session_factory(engine)

    with session_scope(factory) as session:
        session.add(row)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from pulseh2h.db.models import Base


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    The engine is configured with:
    - Pre-ping to verify connections before use (handles stale connections)
    - The parent directory of a file-backed SQLite database created on demand
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,  # We'll handle commits explicitly
        autoflush=False,  # Don't auto-flush before queries (more control)
        expire_on_commit=False,
        bind=engine,
    )


def create_tables(engine: Engine) -> None:
    """Create missing tables (alembic owns migrations; this is for local/dev use)."""
    Base.metadata.create_all(engine)


def describe_engine(engine: Optional[Engine]) -> str:
    """Engine URL with any password masked, for stats output."""
    if engine is None:
        return "unbound"
    return engine.url.render_as_string(hide_password=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
