"""
auth/sessions.py: Session cookies and principal resolution
============================================================
Sessions are stateless JWTs carried in HTTP-only cookies. Admins,
teachers and students use ``auth-token``; parents use ``parent-token``.

Every resolution re-reads the account, so deactivating an account or
changing its role ends existing sessions on their next request rather
than at token expiry.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Optional

from fastapi import Request, Response
from jose import JWTError

from .core import REQUIRED_CLAIMS, create_session_token, decode_token
from .credentials import Principal
from ..accounts import find_account_by_id, kind_for_role
from ..config import settings

logger = logging.getLogger("coaching.auth")

AUTH_COOKIE = "auth-token"
PARENT_COOKIE = "parent-token"
SESSION_COOKIES = (AUTH_COOKIE, PARENT_COOKIE)


def cookie_name_for(role: str) -> str:
    return PARENT_COOKIE if role == "parent" else AUTH_COOKIE


def issue_token(
    subject_id: int,
    username: str,
    role: str,
    expires_in: Optional[timedelta] = None,
) -> str:
    """Mint a session token for a freshly verified principal."""
    return create_session_token(subject_id, username, role, expires_in=expires_in)


def principal_from_token(token: str) -> Optional[Principal]:
    """Verify ``token`` and return the live principal it names, or None."""
    if not token:
        return None
    try:
        payload = decode_token(token)
    except JWTError as exc:
        logger.info("Rejected session token: %s", exc)
        return None

    if not all(payload.get(claim) for claim in REQUIRED_CLAIMS):
        return None
    try:
        subject_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None

    role = payload["role"]
    account = find_account_by_id(subject_id, kind_for_role(role))
    if account is None or not account.is_active:
        return None
    if account.role != role:
        logger.info("Session for %s #%d carries stale role %r", account.kind, account.id, role)
        return None
    return Principal.from_account(account)


def resolve_principal(
    request: Request,
    cookie_names: Iterable[str] = SESSION_COOKIES,
) -> Optional[Principal]:
    """Return the principal for the first cookie that holds a valid session."""
    for name in cookie_names:
        token = request.cookies.get(name)
        if not token:
            continue
        principal = principal_from_token(token)
        if principal is not None:
            return principal
    return None


# ---------------------------------------------------------------------------
# Cookie helpers for route handlers
# ---------------------------------------------------------------------------

def set_session_cookie(response: Response, principal: Principal, token: str) -> None:
    response.set_cookie(
        cookie_name_for(principal.role),
        token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookies(response: Response) -> None:
    for name in SESSION_COOKIES:
        response.set_cookie(
            name,
            "",
            max_age=0,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )
