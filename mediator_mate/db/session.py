"""
Database Session Management
===========================

SQLAlchemy engine and session handling for the record store.
SQLite by default; any SQLAlchemy URL via DATABASE_URL.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base
from ..schemas import LEGACY_TASK_STATUSES

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./mediator_mate.db"

_engine = None
_engine_url = None

# Session factory is configured lazily (important for tests that set DATABASE_URL at runtime).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def _current_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def _create_engine_for_url(database_url: str):
    echo = os.environ.get("SQL_ECHO", "false").lower() == "true"
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,
    )


def get_engine():
    """Get the SQLAlchemy engine"""
    global _engine, _engine_url
    database_url = _current_database_url()
    if _engine is None or _engine_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = _create_engine_for_url(database_url)
        _engine_url = database_url
        SessionLocal.configure(bind=_engine)
    return _engine


def reset_engine():
    """Reset engine/sessionmaker (primarily for tests)."""
    global _engine, _engine_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    SessionLocal.configure(bind=None)


def init_db():
    """Initialize database tables and migrate legacy task statuses"""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    migrate_legacy_task_statuses(engine)


def migrate_legacy_task_statuses(engine) -> int:
    """
    Rewrite Pending/Completed task statuses to Todo/Done.

    Returns the number of rows changed.
    """
    if "tasks" not in inspect(engine).get_table_names():
        return 0

    changed = 0
    with engine.begin() as conn:
        for legacy, canonical in LEGACY_TASK_STATUSES.items():
            result = conn.execute(
                text("UPDATE tasks SET status = :canonical WHERE status = :legacy"),
                {"canonical": canonical, "legacy": legacy},
            )
            changed += result.rowcount or 0
    if changed:
        logger.info(f"Migrated {changed} legacy task statuses")
    return changed


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database session.

    Usage:
        with get_db_session() as db:
            db.query(Matter).all()
    """
    # Ensure SessionLocal is configured for current DATABASE_URL
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
