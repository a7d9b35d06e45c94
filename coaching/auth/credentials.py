from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .core import dummy_password_hash, verify_password
from ..accounts import ACCOUNT_KINDS, AccountRecord, find_account_by_identifier

logger = logging.getLogger("coaching.auth")


@dataclass(frozen=True)
class Principal:
    """The resolved identity behind the current request."""

    id: int
    username: str
    role: str  # admin | teacher | student | parent
    name: str
    email: str

    @classmethod
    def from_account(cls, account: AccountRecord) -> "Principal":
        return cls(
            id=account.id,
            username=account.username,
            role=account.role,
            name=account.name,
            email=account.email,
        )

    @property
    def is_parent(self) -> bool:
        return self.role == "parent"


def verify_credentials(
    identifier: str,
    password: str,
    kinds: Iterable[str] = ACCOUNT_KINDS,
) -> Optional[Principal]:
    """
    Return the Principal for an active account matching ``identifier``
    (username or email) and ``password``, else None.

    Exactly one bcrypt comparison runs whether or not the account exists,
    so response time does not tell a caller which usernames are taken.
    """
    account = find_account_by_identifier(identifier, kinds)

    if account is None:
        verify_password(password, dummy_password_hash())
        logger.warning("Login failed: unknown or inactive identifier")
        return None

    if not verify_password(password, account.password_hash):
        logger.warning("Login failed: bad password for %s #%d", account.kind, account.id)
        return None

    return Principal.from_account(account)
