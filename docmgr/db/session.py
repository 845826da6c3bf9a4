"""
docmgr Database Session Management.

Single entry point for DB initialisation plus a context manager for
transactional access. Services receive the ``sessionmaker`` returned by
``init_db()`` and open one short-lived session per operation.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.orm import Session, sessionmaker

from docmgr.db.base import Base, engine_registry, is_sqlite

CORE_ENGINE = "docmgr_core"

_session_factory: Optional[sessionmaker] = None


def init_db(
    db_url: str,
    schema: Optional[str] = None,
    create_tables: bool = False,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
) -> sessionmaker:
    """
    Initialise the docmgr database.

    1. Registers the "docmgr_core" engine in the EngineRegistry.
    2. On PostgreSQL with a ``schema``: creates it if missing and pins
       ``search_path`` on every new connection.
    3. Optionally runs ``Base.metadata.create_all()``.

    Returns:
        A ``sessionmaker`` bound to the engine. Sessions do not expire
        attributes on commit so returned rows stay readable after close.
    """
    global _session_factory

    import sqlalchemy
    from sqlalchemy import text as sa_text

    # Import models so they are attached to Base.metadata
    from docmgr.db import models  # noqa: F401

    engine_registry.register(
        CORE_ENGINE, db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
    )
    engine = engine_registry.get(CORE_ENGINE)

    if schema and not is_sqlite(db_url):
        with engine.connect() as conn:
            conn.execute(sa_text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            conn.commit()

        @sqlalchemy.event.listens_for(engine, "connect")
        def set_search_path(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute(f'SET search_path TO "{schema}", public')
            cursor.close()

    if create_tables:
        Base.metadata.create_all(engine)

    _session_factory = engine_registry.get_session_factory(CORE_ENGINE)
    return _session_factory


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for DB sessions with auto-commit/rollback.

    Usage:
        with session_scope(factory) as session:
            user = session.query(User).filter_by(login_code=code).first()
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


def close_all_sessions() -> None:
    """Dispose all engines. Used during shutdown."""
    global _session_factory
    _session_factory = None
    engine_registry.dispose()
