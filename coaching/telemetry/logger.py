from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..accounts import kind_for_role, model_for
from ..auth.credentials import Principal
from ..database import db_session
from ..models import LoginHistory


def record_login(
    principal: Principal,
    ip_address: Optional[str],
    user_agent: Optional[str],
    method: str = "password",
) -> None:
    """
    Persist a successful login and bump the account's login counters.

    Writes a LoginHistory row and updates ``last_login_at`` /
    ``login_count`` on the matching users or parents row.
    """
    kind = kind_for_role(principal.role)
    with db_session() as session:
        row = session.get(model_for(kind), principal.id)
        if row is not None:
            row.last_login_at = datetime.now(timezone.utc)
            row.login_count = (row.login_count or 0) + 1

        session.add(LoginHistory(
            account_kind=kind,
            account_id=principal.id,
            username=principal.username,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512],
            method=method,
        ))
