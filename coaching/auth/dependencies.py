from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from slowapi.util import get_remote_address

from .credentials import Principal
from .sessions import resolve_principal
from .throttle import RateLimiter
from ..config import settings


# ---------------------------------------------------------------------------
# Resolve current principal from session cookies
# ---------------------------------------------------------------------------

def get_current_principal(request: Request) -> Principal:
    """Return the principal behind the request's session cookie or raise 401."""
    principal = resolve_principal(request)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Not authenticated.")
    return principal


# ---------------------------------------------------------------------------
# Role guards
# ---------------------------------------------------------------------------

def require_roles(*roles: str) -> Callable[..., Principal]:
    allowed = frozenset(roles)

    def guard(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                                detail="You do not have access to this resource.")
        return principal

    return guard


require_admin = require_roles("admin")
require_teacher = require_roles("teacher")
require_parent = require_roles("parent")
require_student = require_roles("student")


# ---------------------------------------------------------------------------
# Login throttling
# ---------------------------------------------------------------------------

def get_login_limiter(request: Request) -> RateLimiter:
    return request.app.state.login_limiter


def client_key(request: Request) -> str:
    """Remote address, or the first X-Forwarded-For hop behind a trusted proxy."""
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return get_remote_address(request) or "unknown"
