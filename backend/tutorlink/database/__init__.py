"""
Database engine, session factory, and metadata shared across the application.

Bookings and lifecycle transitions serialize on a tutor or session row lock.
PostgreSQL provides that through ``SELECT ... FOR UPDATE``. SQLite ignores
row locks, so SQLite engines open every transaction with ``BEGIN IMMEDIATE``
and the database write lock plays the same role.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from tutorlink.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_pre_ping": True,
    "future": True,
}

SQLITE_BUSY_TIMEOUT_SECONDS = 15


def _is_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite")


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options per backend; SQLite connections are shared across threads."""

    kwargs = dict(_DEFAULT_POOL_KWARGS)
    if _is_sqlite(db_url):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
    else:
        kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_recycle": 300})
    kwargs["echo"] = settings.database_echo
    return kwargs


def use_immediate_transactions(target: Engine) -> None:
    """
    Make every SQLite transaction take the write lock when it begins.

    pysqlite's own transaction handling is switched off so that SQLAlchemy
    decides when BEGIN is emitted.
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(db_url: str) -> Engine:
    new_engine = create_engine(db_url, **_build_engine_kwargs(db_url))
    if _is_sqlite(db_url):
        use_immediate_transactions(new_engine)

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


db_url = settings.database_url
engine: Engine = build_engine(db_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_schema(bind: Engine | None = None) -> None:
    """Create any missing tables for the registered models."""
    import tutorlink.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "create_schema",
    "engine",
    "get_db",
]
