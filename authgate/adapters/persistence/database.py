"""SQLAlchemy engine and unit-of-work sessions for the durable store.

SQLite (dev/tests) and PostgreSQL (prod) are both supported through the
database URL. The engine and its connection pool are process-wide and shared
by every worker thread.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from authgate.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# Engine and session factory (lazy initialization)
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Get or create the engine."""
    global _engine
    if _engine is None:
        url = settings.database.url
        _engine = create_engine(
            url,
            echo=settings.database.echo,
            pool_pre_ping=True,
            # SQLite connections are shared across the threadpool
            connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


def configure_database(engine: Engine) -> None:
    """Bind the module to an existing engine (tests, scripts)."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = None


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Run one unit of work in a single transaction.

    Commits on success, rolls back and re-raises on any error.

    Usage:
        with session_scope() as session:
            session.add(token)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables. Call this on startup."""
    # Models must be imported so their tables are registered on Base.metadata
    from authgate.adapters.persistence import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("database.initialized", extra={"tables": sorted(Base.metadata.tables)})


def close_db() -> None:
    """Dispose pooled connections. Call this on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
