"""Database engine and session management."""

import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from rent_scout.models.db_models import Base

DEFAULT_DB_PATH = Path("data") / "rent_scout.db"


def _get_db_path() -> Path:
    """Get database path from environment variable or default."""
    env_path = os.environ.get("RENT_SCOUT_DB_PATH")
    if env_path:
        return Path(env_path)
    return DEFAULT_DB_PATH


def get_database_url(db_path: Path | None = None) -> str:
    """Get database URL from environment or construct from path.

    Priority:
        1. DATABASE_URL environment variable
        2. Explicit db_path argument
        3. RENT_SCOUT_DB_PATH environment variable
        4. Default path (data/rent_scout.db)
    """
    if url := os.environ.get("DATABASE_URL"):
        return url
    path = db_path or _get_db_path()
    return f"sqlite:///{path}"


_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _configure_sqlite(dbapi_connection: Any, _connection_record: Any) -> None:
    """Per-connection pragmas: WAL journaling and enforced foreign keys.

    Station distances and relation rows rely on ON DELETE CASCADE, which
    SQLite ignores unless foreign keys are switched on for each connection.
    """
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def get_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Get or create the SQLAlchemy engine.

    SQLite databases get WAL journaling and a busy timeout; tables are
    created on first use.

    Args:
        db_path: Path to SQLite database file.
        echo: Whether to echo SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine

    if _engine is None:
        path_obj = Path(db_path) if db_path else None
        database_url = get_database_url(db_path=path_obj)

        engine_kwargs: dict[str, object] = {"echo": echo}
        is_sqlite = database_url.startswith("sqlite")
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if path_obj is None and not os.environ.get("DATABASE_URL"):
                path_obj = _get_db_path()
            if path_obj:
                path_obj.parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs["pool_size"] = 5
            engine_kwargs["pool_recycle"] = 3600

        _engine = create_engine(database_url, **engine_kwargs)
        if is_sqlite:
            event.listen(_engine, "connect", _configure_sqlite)

        Base.metadata.create_all(_engine)

    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Get or create the session factory."""
    global _SessionLocal

    if _SessionLocal is None:
        if engine is None:
            engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    return _SessionLocal


@contextmanager
def get_session(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Get a database session as a context manager."""
    session_factory = get_session_factory(engine)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def init_db(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Initialize the database, creating all tables."""
    return get_engine(db_path, echo)


def reset_engine() -> None:
    """Reset the global engine and session factory. Useful for testing."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
