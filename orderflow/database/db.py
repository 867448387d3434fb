"""Database connection and session management."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from orderflow.core.config import get_config

logger = logging.getLogger(__name__)

config = get_config()
DATABASE_URL = config.DATABASE_URL


def _enable_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT and row locks behave on pysqlite.

    Foreign keys are enforced as on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL with the transaction semantics the services rely on."""
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
        _enable_sqlite_transactions(engine)
        return engine
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=10,
        max_overflow=20,
    )


def _configure_engine(database_url: str) -> None:
    global DATABASE_URL, engine, SessionLocal
    DATABASE_URL = database_url
    engine = build_engine(database_url, echo=config.DEBUG and not config.is_production)
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


_configure_engine(DATABASE_URL)


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine."""
    return engine


def get_active_database_url() -> str:
    """Return the currently bound database URL."""
    return DATABASE_URL


def get_db() -> Generator[Session, None, None]:
    """Yield a session for dependency injection contexts."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context-manager wrapper for safe DB session lifecycle."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_database_connection() -> bool:
    """Verify DB connectivity during startup."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:  # pragma: no cover - exercised in deployment.
        logger.exception("database.connection_failed", extra={"event": "database.connection_failed"})
        logger.error("database.connection_failed.details: %s", exc)
        return False
