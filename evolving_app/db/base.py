"""Database configuration and base setup for the evolving app."""

import os
from typing import Any, Dict, Generator, Optional

import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Default to a local SQLite database when DATABASE_URL is not provided.
DEFAULT_DATABASE_URL = "sqlite:///./evolving_app.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL)
    # str(url) would mask the password with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


def create_db_engine(database_url: str, statement_timeout: Optional[float] = None) -> Engine:
    """Create an engine configured for the given URL.

    ``statement_timeout`` (seconds) bounds blocking database work on the
    driver side: the lock wait on SQLite, the statement time on PostgreSQL.
    """
    if database_url.startswith("sqlite"):
        # SQLite configuration for development/testing
        connect_args: Dict[str, Any] = {"check_same_thread": False}
        if statement_timeout is not None:
            connect_args["timeout"] = statement_timeout
        return create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
        )

    # PostgreSQL configuration for production
    connect_args = {"connect_timeout": 10}
    if statement_timeout is not None:
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"
    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args=connect_args,
    )


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """
    Create and cache the database engine.

    Lazy so that importing the package never connects to a database.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(
            get_database_url(settings.database_url),
            statement_timeout=settings.external_call_timeout_seconds,
        )
    return _engine


def get_session_local(engine: Optional[Engine] = None) -> sessionmaker:
    """Get a sessionmaker bound to the given (or default) engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    session_local = get_session_local()
    db = session_local()
    try:
        yield db
    finally:
        db.close()


def init_database(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("database_initialized")
