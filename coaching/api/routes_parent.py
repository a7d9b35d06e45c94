from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import func, select, update

from ..accounts import PARENT, is_identifier_taken
from ..auth.core import hash_password
from ..auth.credentials import Principal
from ..auth.dependencies import get_login_limiter, require_parent
from ..auth.routes_auth import authenticate
from ..auth.throttle import RateLimiter
from ..config import settings
from ..database import db_session
from ..models import Parent, ParentNotification, User
from ..rate_limit import limiter
from ..schemas import (
    ChildRead,
    LoginResponse,
    MessageResponse,
    NotificationList,
    NotificationRead,
    ParentLoginRequest,
    ParentRead,
    ParentRegister,
    PrincipalRead,
)

router = APIRouter(prefix="/parent", tags=["parent"])


def _notification_read(note: ParentNotification) -> NotificationRead:
    return NotificationRead(
        id=note.id,
        student_id=note.student_id,
        student_name=note.student.name if note.student else "",
        type=note.type,
        title=note.title,
        message=note.message,
        priority=note.priority,
        is_read=note.is_read,
        created_at=note.created_at,
    )


# ---------------------------------------------------------------------------
# Login / registration
# ---------------------------------------------------------------------------

@router.post("/auth/login", response_model=LoginResponse)
async def parent_login(
    request: Request,
    response: Response,
    body: ParentLoginRequest,
    login_limiter: RateLimiter = Depends(get_login_limiter),
) -> LoginResponse:
    principal = await authenticate(
        request, response, login_limiter,
        str(body.email), body.password,
        kinds=(PARENT,), prefix="parent-login",
    )
    return LoginResponse(user=PrincipalRead.model_validate(principal))


@router.post("/register", response_model=ParentRead, status_code=201)
@limiter.limit(settings.registration_rate_limit)
def register_parent(request: Request, body: ParentRegister) -> ParentRead:
    email = str(body.email).lower()
    with db_session() as session:
        if is_identifier_taken(session, body.username, email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An account with this username or email already exists.",
            )

        children: List[User] = []
        if body.children:
            children = list(session.execute(
                select(User).where(User.id.in_(body.children), User.role == "student")
            ).scalars().all())
            if len(children) != len(set(body.children)):
                raise HTTPException(status_code=400, detail="Unknown student id in children.")

        parent = Parent(
            username=body.username,
            email=email,
            first_name=body.first_name,
            last_name=body.last_name,
            phone=body.phone,
            password_hash=hash_password(body.password),
            is_active=True,
            children=children,
        )
        session.add(parent)
        session.flush()
        session.refresh(parent)
        return ParentRead.model_validate(parent)


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------

@router.get("/children", response_model=List[ChildRead])
def list_children(parent: Principal = Depends(require_parent)) -> List[ChildRead]:
    with db_session() as session:
        row = session.get(Parent, parent.id)
        if not row:
            raise HTTPException(status_code=404, detail="Parent not found.")
        return [ChildRead.model_validate(c) for c in row.children]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@router.get("/notifications", response_model=NotificationList)
def list_notifications(parent: Principal = Depends(require_parent)) -> NotificationList:
    with db_session() as session:
        rows = session.execute(
            select(ParentNotification)
            .where(ParentNotification.parent_id == parent.id)
            .order_by(ParentNotification.created_at.desc(), ParentNotification.id.desc())
        ).scalars().all()
        unread = session.execute(
            select(func.count()).select_from(ParentNotification)
            .where(ParentNotification.parent_id == parent.id, ParentNotification.is_read.is_(False))
        ).scalar_one()
        return NotificationList(
            notifications=[_notification_read(n) for n in rows],
            unread_count=unread,
        )


@router.post("/notifications/read-all", response_model=MessageResponse)
def mark_all_read(parent: Principal = Depends(require_parent)) -> MessageResponse:
    with db_session() as session:
        result = session.execute(
            update(ParentNotification)
            .where(ParentNotification.parent_id == parent.id, ParentNotification.is_read.is_(False))
            .values(is_read=True)
        )
    return MessageResponse(message=f"{result.rowcount} notifications marked as read.")


@router.post("/notifications/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, parent: Principal = Depends(require_parent)) -> NotificationRead:
    with db_session() as session:
        note = session.get(ParentNotification, notification_id)
        if not note or note.parent_id != parent.id:
            raise HTTPException(status_code=404, detail="Notification not found.")
        note.is_read = True
        session.flush()
        return _notification_read(note)
