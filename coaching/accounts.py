"""
accounts.py: Account lookup for authentication
================================================
Users (admin / teacher / student) and parents live in separate tables.
Authentication code only needs a flat, detached view of either, so the
lookups here return ``AccountRecord`` snapshots rather than ORM rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .database import db_session
from .models import Parent, User

USER = "user"
PARENT = "parent"
ACCOUNT_KINDS = (USER, PARENT)


@dataclass(frozen=True)
class AccountRecord:
    id: int
    kind: str
    username: str
    email: str
    name: str
    role: str
    password_hash: str
    is_active: bool


def kind_for_role(role: str) -> str:
    return PARENT if role == "parent" else USER


def model_for(kind: str) -> type:
    if kind == USER:
        return User
    if kind == PARENT:
        return Parent
    raise ValueError(f"Unknown account kind: {kind!r}")


def _to_record(row: Union[User, Parent], kind: str) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        kind=kind,
        username=row.username,
        email=row.email,
        name=row.name,
        role=row.role,
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
    )


def find_account_by_identifier(
    identifier: str,
    kinds: Iterable[str] = ACCOUNT_KINDS,
) -> Optional[AccountRecord]:
    """
    Return the first active account whose username or email equals
    ``identifier``. Kinds are searched in the order given.
    """
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    email = identifier.lower()

    with db_session() as session:
        for kind in kinds:
            model = model_for(kind)
            row = session.execute(
                select(model)
                .where(or_(model.username == identifier, model.email == email))
                .where(model.is_active.is_(True))
                .limit(1)
            ).scalar_one_or_none()
            if row is not None:
                return _to_record(row, kind)
    return None


def find_account_by_id(account_id: int, kind: str) -> Optional[AccountRecord]:
    """Return the account regardless of ``is_active``; callers decide."""
    with db_session() as session:
        row = session.get(model_for(kind), account_id)
        if row is None:
            return None
        return _to_record(row, kind)


def is_identifier_taken(session: Session, username: str, email: str) -> bool:
    """
    True if any account in either table already uses ``username`` or
    ``email`` as a username or an email. Login matches one identifier
    against both columns of both tables, so no identifier may collide
    with either column anywhere.
    """
    identifiers = {username.strip().lower(), email.strip().lower()}
    for kind in ACCOUNT_KINDS:
        model = model_for(kind)
        hit = session.execute(
            select(model.id)
            .where(or_(func.lower(model.username).in_(identifiers), model.email.in_(identifiers)))
            .limit(1)
        ).first()
        if hit is not None:
            return True
    return False
