from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

NotificationType = Literal[
    "assignment_completed",
    "assignment_graded",
    "goal_achieved",
    "low_performance",
    "attendance",
    "general",
]
Priority = Literal["low", "medium", "high"]
AssignmentType = Literal["individual", "class"]
GoalStatus = Literal["pending", "in_progress", "completed", "cancelled"]
GoalCategory = Literal["academic", "behavioral", "skill", "personal", "other"]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)


class ParentLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class PrincipalRead(BaseModel):
    id: int
    username: str
    email: str
    name: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    message: str = "Login successful."
    user: PrincipalRead


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class AccountCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=32, pattern=r"^[0-9+\-\s()]*$")
    password: str = Field(..., min_length=6, max_length=128)


class ParentRegister(AccountCreate):
    phone: str = Field(..., min_length=10, max_length=32, pattern=r"^[0-9+\-\s()]*$")
    children: List[int] = Field(default_factory=list)


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    teacher_id: Optional[int] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None
    login_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class ChildRead(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class ParentRead(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    children: List[ChildRead] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ToggleStatus(BaseModel):
    is_active: bool


class StatusRead(BaseModel):
    id: int
    is_active: bool


class PasswordUpdate(BaseModel):
    new_password: str = Field(..., min_length=6, max_length=128)


class AccountStats(BaseModel):
    admins: int
    teachers: int
    active_teachers: int
    students: int
    parents: int
    active_parents: int


# ---------------------------------------------------------------------------
# Parent notifications
# ---------------------------------------------------------------------------

class NotificationCreate(BaseModel):
    student_id: int
    type: NotificationType = "general"
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    priority: Priority = "medium"


class NotificationRead(BaseModel):
    id: int
    student_id: int
    student_name: str
    type: str
    title: str
    message: str
    priority: str
    is_read: bool
    created_at: datetime


class NotificationList(BaseModel):
    notifications: List[NotificationRead]
    unread_count: int


# ---------------------------------------------------------------------------
# Classes, assignments, goals
# ---------------------------------------------------------------------------

class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    student_ids: List[int] = Field(default_factory=list)


class ClassRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    teacher_id: int
    students: List[ChildRead] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    type: AssignmentType = "individual"
    class_id: Optional[int] = None  # required for class assignments
    student_id: Optional[int] = None  # required for individual assignments
    due_date: datetime
    max_grade: int = Field(default=100, ge=1, le=100)


class AssignmentRead(BaseModel):
    id: int
    title: str
    description: str
    type: str
    class_id: Optional[int] = None
    student_id: int
    student_name: str
    due_date: datetime
    max_grade: int
    created_at: datetime


class GoalCreate(BaseModel):
    student_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    success_criteria: str = Field(..., min_length=1, max_length=500)
    target_date: datetime
    category: GoalCategory = "academic"
    priority: Priority = "medium"
    assignment_id: Optional[int] = None


class GoalProgress(BaseModel):
    status: Optional[GoalStatus] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)


class GoalLink(BaseModel):
    assignment_id: int


class GoalRead(BaseModel):
    id: int
    student_id: int
    student_name: str
    teacher_id: int
    title: str
    description: str
    success_criteria: str
    target_date: datetime
    status: str
    progress: int
    category: str
    priority: str
    assignment_id: Optional[int] = None
    created_at: datetime
