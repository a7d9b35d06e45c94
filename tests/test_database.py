"""
Tests for engine options and the db_session unit of work.

Run with: pytest tests/test_database.py -v
"""
from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from coaching.database import db_session, engine, engine_options
from coaching.models import ParentNotification, User


def test_sqlite_options_allow_cross_thread_use():
    assert engine_options("sqlite:///./x.db") == {"connect_args": {"check_same_thread": False}}


def test_server_databases_get_pool_health_checks():
    opts = engine_options("postgresql+psycopg://coach@db/coaching")
    assert opts["pool_pre_ping"] is True
    assert "connect_args" not in opts


def test_sqlite_foreign_keys_are_enforced():
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    with pytest.raises(IntegrityError):
        with db_session() as session:
            session.add(ParentNotification(
                parent_id=999999,
                student_id=999999,
                type="general",
                title="Orphan",
                message="No parent row behind this.",
                priority="low",
            ))


def test_db_session_rolls_back_on_error(make_user):
    user = make_user(role="student")
    with pytest.raises(RuntimeError):
        with db_session() as session:
            row = session.get(User, user.id)
            row.first_name = "Changed"
            raise RuntimeError("boom")

    with db_session() as session:
        first_name = session.execute(select(User.first_name).where(User.id == user.id)).scalar_one()
    assert first_name == "Student"
