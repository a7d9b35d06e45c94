"""
database.py: Engine, sessions and schema bootstrap
====================================================
SQLite is the default store for local runs and tests; any SQLAlchemy URL
works in deployment. SQLite connections get foreign-key enforcement
switched on, since parent links and notifications reference user rows.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings


class Base(DeclarativeBase):
    pass


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for ``create_engine`` suited to the backend behind ``url``."""
    if is_sqlite(url):
        # Request handlers run on the threadpool, not the creating thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 1800}


engine = create_engine(settings.database_url, echo=settings.log_sql, **engine_options(settings.database_url))

if is_sqlite(settings.database_url):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db() -> None:
    """Create any missing tables. Existing tables are left untouched."""
    from . import models  # noqa: F401  register mappers on Base.metadata

    Base.metadata.create_all(bind=engine)


@contextmanager
def db_session() -> Iterator[Session]:
    """Unit of work: commit when the block exits cleanly, roll back if it raises."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
