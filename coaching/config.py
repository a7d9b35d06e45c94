from __future__ import annotations

import sys
from functools import lru_cache
from typing import List

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIN_JWT_SECRET_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the given environment."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COACH_")

    # Database
    database_url: str = "sqlite:///./coaching.db"
    log_sql: bool = False

    # Server
    environment: str = "development"
    log_level: str = "info"
    log_format: str = "json"  # json | text
    allow_cors_origins: List[str] = ["http://localhost:3000"]

    # Sessions
    jwt_secret: str = ""
    session_ttl_days: int = 7
    bcrypt_rounds: int = 12

    # Login throttling
    login_max_attempts: int = 5
    login_window_seconds: int = 15 * 60
    rate_limit_backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    redis_timeout_seconds: float = 0.5
    rate_limit_fail_open: bool = False
    trust_proxy_headers: bool = False

    # slowapi limit for public registration
    registration_rate_limit: str = "3/minute"

    # Seeded admin
    admin_username: str = "admin"
    admin_email: str = "admin@coaching.local"
    admin_password: str = "changeme"
    admin_first_name: str = "Coaching"
    admin_last_name: str = "Admin"

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Refuse to start without a signing secret of usable length."""
        if len(v) < MIN_JWT_SECRET_LENGTH:
            print(
                "\nFATAL: COACH_JWT_SECRET is missing or shorter than "
                f"{MIN_JWT_SECRET_LENGTH} characters.\n"
                "   Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\"\n",
                file=sys.stderr,
            )
            raise ValueError(
                f"JWT secret must be at least {MIN_JWT_SECRET_LENGTH} characters. "
                "Set COACH_JWT_SECRET env var."
            )
        return v

    @field_validator("rate_limit_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("memory", "redis"):
            raise ValueError("rate_limit_backend must be 'memory' or 'redis'.")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


# Module-level singleton for convenience
settings = get_settings()
