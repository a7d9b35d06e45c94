from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
from jose import jwt

from ..config import settings

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

# bcrypt only looks at the first 72 bytes; newer releases raise instead of
# truncating silently.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode()[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Fixed hash at the configured cost, compared against when no account matches."""
    return hash_password("dummy-password-for-timing-equalisation")


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("sub", "username", "role")


def create_session_token(
    subject_id: int | str,
    username: str,
    role: str,
    expires_in: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_in if expires_in is not None else timedelta(days=settings.session_ttl_days))
    payload = {
        "sub": str(subject_id),
        "username": username,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
