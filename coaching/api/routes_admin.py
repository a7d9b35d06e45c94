from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select

from ..accounts import is_identifier_taken
from ..auth.core import hash_password
from ..auth.credentials import Principal
from ..auth.dependencies import require_admin
from ..database import db_session
from ..models import Parent, User
from ..schemas import AccountCreate, AccountStats, StatusRead, ToggleStatus, UserRead

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Teachers
# ---------------------------------------------------------------------------

@router.get("/teachers", response_model=List[UserRead])
def list_teachers(_admin: Principal = Depends(require_admin)) -> List[UserRead]:
    with db_session() as session:
        rows = session.execute(
            select(User).where(User.role == "teacher").order_by(User.created_at)
        ).scalars().all()
        return [UserRead.model_validate(u) for u in rows]


@router.post("/teachers", response_model=UserRead, status_code=201)
def create_teacher(body: AccountCreate, _admin: Principal = Depends(require_admin)) -> UserRead:
    email = str(body.email).lower()
    with db_session() as session:
        if is_identifier_taken(session, body.username, email):
            raise HTTPException(status_code=409, detail="Username or email already registered.")
        teacher = User(
            username=body.username,
            email=email,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            password_hash=hash_password(body.password),
            role="teacher",
            is_active=True,
        )
        session.add(teacher)
        session.flush()
        session.refresh(teacher)
        return UserRead.model_validate(teacher)


@router.post("/teachers/{teacher_id}/toggle-status", response_model=StatusRead)
def toggle_teacher_status(
    teacher_id: int,
    body: ToggleStatus,
    _admin: Principal = Depends(require_admin),
) -> StatusRead:
    """Activate or deactivate a teacher. Deactivation ends their sessions on next request."""
    with db_session() as session:
        teacher = session.get(User, teacher_id)
        if not teacher or teacher.role != "teacher":
            raise HTTPException(status_code=404, detail="Teacher not found.")
        teacher.is_active = body.is_active
        return StatusRead(id=teacher.id, is_active=teacher.is_active)


# ---------------------------------------------------------------------------
# Parents
# ---------------------------------------------------------------------------

@router.post("/parents/{parent_id}/toggle-status", response_model=StatusRead)
def toggle_parent_status(
    parent_id: int,
    body: ToggleStatus,
    _admin: Principal = Depends(require_admin),
) -> StatusRead:
    with db_session() as session:
        parent = session.get(Parent, parent_id)
        if not parent:
            raise HTTPException(status_code=404, detail="Parent not found.")
        parent.is_active = body.is_active
        return StatusRead(id=parent.id, is_active=parent.is_active)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@router.get("/stats", response_model=AccountStats)
def account_stats(_admin: Principal = Depends(require_admin)) -> AccountStats:
    with db_session() as session:
        by_role = dict(
            session.execute(select(User.role, func.count()).group_by(User.role)).all()
        )
        active_teachers = session.execute(
            select(func.count()).select_from(User)
            .where(User.role == "teacher", User.is_active.is_(True))
        ).scalar_one()
        parents = session.execute(select(func.count()).select_from(Parent)).scalar_one()
        active_parents = session.execute(
            select(func.count()).select_from(Parent).where(Parent.is_active.is_(True))
        ).scalar_one()

    return AccountStats(
        admins=by_role.get("admin", 0),
        teachers=by_role.get("teacher", 0),
        active_teachers=active_teachers,
        students=by_role.get("student", 0),
        parents=parents,
        active_parents=active_parents,
    )
