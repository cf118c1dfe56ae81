"""
Database connection and session management module.

Uses SQLAlchemy for ORM operations. Supports PostgreSQL (deployment) and
SQLite (local development and tests). The engine is built from ``Settings``
once at start-up and stored on the application state; ``get_db`` hands every
request its own session.
"""

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from sqlalchemy.pool import StaticPool

from sims.config import Settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for ``settings.database_url``.

    SQLite does not support pool_size, max_overflow or pool_pre_ping. An
    in-memory SQLite database is shared across threads through a static
    pool so the request thread pool sees a single database.
    """
    url = settings.database_url
    engine_kwargs = {"echo": False}

    if url.startswith("postgresql"):
        engine_kwargs.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
        })
    elif url.startswith("sqlite"):
        # FastAPI serves sync endpoints from a thread pool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            if not _is_memory_sqlite(url):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Yields a session and ensures it is closed after the request, returning
    the connection to the pool even if an exception occurs.
    """
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Engine):
    """
    Create all database tables directly (used for SQLite and tests).
    For PostgreSQL, use Alembic migrations instead.
    """
    # Registers every model with Base.metadata
    import sims.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
