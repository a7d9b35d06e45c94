"""
api/routes_teacher.py: Teacher-managed student accounts and parent messages
=============================================================================
Teachers create student accounts, reset their passwords, and notify a
parent about one of the parent's linked children. A teacher only ever
sees students whose ``teacher_id`` points at them.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select

from ..accounts import is_identifier_taken
from ..auth.core import hash_password
from ..auth.credentials import Principal
from ..auth.dependencies import require_teacher
from ..database import db_session
from ..models import Parent, ParentNotification, User
from ..schemas import (
    AccountCreate,
    MessageResponse,
    NotificationCreate,
    NotificationRead,
    PasswordUpdate,
    UserRead,
)

router = APIRouter(prefix="/teacher", tags=["teacher"])


def own_student(session, teacher: Principal, student_id: int) -> User:
    student = session.get(User, student_id)
    if not student or student.role != "student" or student.teacher_id != teacher.id:
        raise HTTPException(status_code=404, detail="Student not found.")
    return student


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

@router.get("/students", response_model=List[UserRead])
def list_students(teacher: Principal = Depends(require_teacher)) -> List[UserRead]:
    with db_session() as session:
        rows = session.execute(
            select(User)
            .where(User.role == "student", User.teacher_id == teacher.id)
            .order_by(User.last_name, User.first_name)
        ).scalars().all()
        return [UserRead.model_validate(u) for u in rows]


@router.post("/students", response_model=UserRead, status_code=201)
def create_student(body: AccountCreate, teacher: Principal = Depends(require_teacher)) -> UserRead:
    email = str(body.email).lower()
    with db_session() as session:
        if is_identifier_taken(session, body.username, email):
            raise HTTPException(status_code=409, detail="Username or email already registered.")
        student = User(
            username=body.username,
            email=email,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            password_hash=hash_password(body.password),
            role="student",
            teacher_id=teacher.id,
            is_active=True,
        )
        session.add(student)
        session.flush()
        session.refresh(student)
        return UserRead.model_validate(student)


@router.put("/students/{student_id}/update-password", response_model=MessageResponse)
def update_student_password(
    student_id: int,
    body: PasswordUpdate,
    teacher: Principal = Depends(require_teacher),
) -> MessageResponse:
    with db_session() as session:
        student = own_student(session, teacher, student_id)
        student.password_hash = hash_password(body.new_password)
    return MessageResponse(message="Student password updated.")


# ---------------------------------------------------------------------------
# Parent notifications
# ---------------------------------------------------------------------------

@router.post("/parents/{parent_id}/notifications", response_model=NotificationRead, status_code=201)
def notify_parent(
    parent_id: int,
    body: NotificationCreate,
    teacher: Principal = Depends(require_teacher),
) -> NotificationRead:
    """Send a notification to a parent about one of their children taught by this teacher."""
    with db_session() as session:
        parent = session.get(Parent, parent_id)
        if not parent or not parent.is_active:
            raise HTTPException(status_code=404, detail="Parent not found.")
        student = own_student(session, teacher, body.student_id)
        if student.id not in {c.id for c in parent.children}:
            raise HTTPException(status_code=400, detail="Student is not linked to this parent.")

        note = ParentNotification(
            parent_id=parent.id,
            student_id=student.id,
            type=body.type,
            title=body.title,
            message=body.message,
            priority=body.priority,
        )
        session.add(note)
        session.flush()
        session.refresh(note)
        return NotificationRead(
            id=note.id,
            student_id=student.id,
            student_name=student.name,
            type=note.type,
            title=note.title,
            message=note.message,
            priority=note.priority,
            is_read=note.is_read,
            created_at=note.created_at,
        )
