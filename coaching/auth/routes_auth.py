from __future__ import annotations

import logging
from typing import Iterable

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from .credentials import Principal, verify_credentials
from .dependencies import client_key, get_current_principal, get_login_limiter
from .sessions import clear_session_cookies, issue_token, set_session_cookie
from .throttle import RateLimiter
from ..accounts import ACCOUNT_KINDS
from ..config import settings
from ..schemas import LoginRequest, LoginResponse, MessageResponse, PrincipalRead
from ..telemetry.logger import record_login

logger = logging.getLogger("coaching.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid username or password."
TOO_MANY_ATTEMPTS = "Too many login attempts. Please try again later."


async def authenticate(
    request: Request,
    response: Response,
    limiter: RateLimiter,
    identifier: str,
    password: str,
    kinds: Iterable[str] = ACCOUNT_KINDS,
    prefix: str = "login",
) -> Principal:
    """
    Shared login flow: throttle by client, verify credentials, mint a
    session token and attach it as a cookie. Raises 429 / 401.
    """
    key = client_key(request)
    result = await limiter.admit(
        key,
        settings.login_max_attempts,
        settings.login_window_seconds,
        prefix=prefix,
    )
    if result.limited:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_ATTEMPTS,
            headers={"Retry-After": str(result.retry_after)},
        )

    principal = await run_in_threadpool(verify_credentials, identifier, password, tuple(kinds))
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail=INVALID_CREDENTIALS)

    await run_in_threadpool(
        record_login,
        principal,
        request.client.host if request.client else None,
        request.headers.get("user-agent", ""),
    )

    token = issue_token(principal.id, principal.username, principal.role)
    set_session_cookie(response, principal, token)
    logger.info("Login: %s #%d (%s)", principal.username, principal.id, principal.role)
    return principal


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------

@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    limiter: RateLimiter = Depends(get_login_limiter),
) -> LoginResponse:
    principal = await authenticate(request, response, limiter, body.username, body.password)
    return LoginResponse(user=PrincipalRead.model_validate(principal))


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response) -> MessageResponse:
    # Clears parent sessions as well
    clear_session_cookies(response)
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Current principal
# ---------------------------------------------------------------------------

@router.get("/me", response_model=PrincipalRead)
def me(principal: Principal = Depends(get_current_principal)) -> PrincipalRead:
    return PrincipalRead.model_validate(principal)
