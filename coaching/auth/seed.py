from __future__ import annotations

import logging

from sqlalchemy import select

from .core import hash_password
from ..config import settings
from ..database import db_session
from ..models import User

logger = logging.getLogger("coaching.seed")

_DEFAULT_PASSWORD = "changeme"


def seed_admin() -> None:
    """
    Create the first admin account if no admin exists yet.
    Credentials come from settings (COACH_ADMIN_* env vars).

    Defaults (for local dev only, change before production):
      COACH_ADMIN_USERNAME = admin
      COACH_ADMIN_EMAIL    = admin@coaching.local
      COACH_ADMIN_PASSWORD = changeme
    """
    with db_session() as session:
        existing = session.execute(
            select(User).where(User.role == "admin").limit(1)
        ).scalar_one_or_none()
        if existing:
            return  # Admin already seeded, don't overwrite

        if settings.admin_password == _DEFAULT_PASSWORD:
            if settings.environment != "development":
                logger.error(
                    "Refusing to seed admin with the default password in %s. "
                    "Set COACH_ADMIN_PASSWORD.",
                    settings.environment,
                )
                return
            logger.warning(
                "Seeding admin with DEFAULT password '%s'. "
                "Set COACH_ADMIN_PASSWORD before deploying.",
                _DEFAULT_PASSWORD,
            )

        admin = User(
            username=settings.admin_username,
            email=settings.admin_email.lower(),
            first_name=settings.admin_first_name,
            last_name=settings.admin_last_name,
            password_hash=hash_password(settings.admin_password),
            role="admin",
            is_active=True,
        )
        session.add(admin)
        logger.info("Default admin created: %s", settings.admin_username)
