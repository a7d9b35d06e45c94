"""
api/routes_coursework.py: Classes, assignments and goals
=========================================================
Teachers group their own students into classes, set assignments (per
student, or for a whole class as one row per member) and track goals
that may point at one of their assignments. Students read their own
assignments and goals and report goal progress.

Everything a teacher touches here must belong to that teacher; anything
else answers 404 so ids of other teachers' rows are not confirmed.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select, update

from .routes_teacher import own_student
from ..auth.credentials import Principal
from ..auth.dependencies import require_student, require_teacher
from ..database import db_session
from ..models import Assignment, Classroom, Goal, User
from ..schemas import (
    AssignmentCreate,
    AssignmentRead,
    ClassCreate,
    ClassRead,
    GoalCreate,
    GoalLink,
    GoalProgress,
    GoalRead,
    MessageResponse,
)

teacher_router = APIRouter(prefix="/teacher", tags=["coursework"])
student_router = APIRouter(prefix="/student", tags=["student"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _assignment_read(a: Assignment) -> AssignmentRead:
    return AssignmentRead(
        id=a.id,
        title=a.title,
        description=a.description,
        type=a.type,
        class_id=a.class_id,
        student_id=a.student_id,
        student_name=a.student.name,
        due_date=a.due_date,
        max_grade=a.max_grade,
        created_at=a.created_at,
    )


def _goal_read(g: Goal) -> GoalRead:
    return GoalRead(
        id=g.id,
        student_id=g.student_id,
        student_name=g.student.name,
        teacher_id=g.teacher_id,
        title=g.title,
        description=g.description,
        success_criteria=g.success_criteria,
        target_date=g.target_date,
        status=g.status,
        progress=g.progress,
        category=g.category,
        priority=g.priority,
        assignment_id=g.assignment_id,
        created_at=g.created_at,
    )


def _own_students(session, teacher: Principal, student_ids: List[int]) -> List[User]:
    wanted = set(student_ids)
    if not wanted:
        return []
    rows = session.execute(
        select(User).where(
            User.id.in_(wanted),
            User.role == "student",
            User.teacher_id == teacher.id,
        )
    ).scalars().all()
    missing = wanted - {u.id for u in rows}
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown student id(s): {sorted(missing)}")
    return list(rows)


def _own_class(session, teacher: Principal, class_id: int) -> Classroom:
    classroom = session.get(Classroom, class_id)
    if not classroom or classroom.teacher_id != teacher.id:
        raise HTTPException(status_code=404, detail="Class not found.")
    return classroom


def _own_assignment(session, teacher: Principal, assignment_id: int) -> Assignment:
    assignment = session.get(Assignment, assignment_id)
    if not assignment or assignment.teacher_id != teacher.id:
        raise HTTPException(status_code=404, detail="Assignment not found.")
    return assignment


def _own_goal(session, teacher: Principal, goal_id: int) -> Goal:
    goal = session.get(Goal, goal_id)
    if not goal or goal.teacher_id != teacher.id:
        raise HTTPException(status_code=404, detail="Goal not found.")
    return goal


def _class_name_taken(session, teacher: Principal, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Classroom.id).where(Classroom.teacher_id == teacher.id, Classroom.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Classroom.id != exclude_id)
    return session.execute(stmt.limit(1)).first() is not None


def _unlink_goals(session, assignment_ids) -> None:
    session.execute(
        update(Goal)
        .where(Goal.assignment_id.in_(assignment_ids))
        .values(assignment_id=None)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

@teacher_router.get("/classes", response_model=List[ClassRead])
def list_classes(teacher: Principal = Depends(require_teacher)) -> List[ClassRead]:
    with db_session() as session:
        rows = session.execute(
            select(Classroom)
            .where(Classroom.teacher_id == teacher.id)
            .order_by(Classroom.created_at.desc(), Classroom.id.desc())
        ).scalars().all()
        return [ClassRead.model_validate(c) for c in rows]


@teacher_router.post("/classes", response_model=ClassRead, status_code=201)
def create_class(body: ClassCreate, teacher: Principal = Depends(require_teacher)) -> ClassRead:
    name = body.name.strip()
    with db_session() as session:
        if _class_name_taken(session, teacher, name):
            raise HTTPException(status_code=409, detail="A class with this name already exists.")
        classroom = Classroom(
            name=name,
            description=body.description,
            teacher_id=teacher.id,
            students=_own_students(session, teacher, body.student_ids),
        )
        session.add(classroom)
        session.flush()
        session.refresh(classroom)
        return ClassRead.model_validate(classroom)


@teacher_router.put("/classes/{class_id}", response_model=ClassRead)
def update_class(
    class_id: int,
    body: ClassCreate,
    teacher: Principal = Depends(require_teacher),
) -> ClassRead:
    name = body.name.strip()
    with db_session() as session:
        classroom = _own_class(session, teacher, class_id)
        if _class_name_taken(session, teacher, name, exclude_id=classroom.id):
            raise HTTPException(status_code=409, detail="A class with this name already exists.")
        classroom.name = name
        classroom.description = body.description
        classroom.students = _own_students(session, teacher, body.student_ids)
        session.flush()
        return ClassRead.model_validate(classroom)


@teacher_router.delete("/classes/{class_id}", response_model=MessageResponse)
def delete_class(class_id: int, teacher: Principal = Depends(require_teacher)) -> MessageResponse:
    """Delete a class together with every assignment set for it."""
    with db_session() as session:
        classroom = _own_class(session, teacher, class_id)
        class_assignments = select(Assignment.id).where(Assignment.class_id == classroom.id)
        _unlink_goals(session, class_assignments)
        removed = session.execute(
            delete(Assignment)
            .where(Assignment.class_id == classroom.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        session.delete(classroom)
    return MessageResponse(message=f"Class deleted with {removed} assignment(s).")


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------

@teacher_router.get("/assignments", response_model=List[AssignmentRead])
def list_assignments(teacher: Principal = Depends(require_teacher)) -> List[AssignmentRead]:
    with db_session() as session:
        rows = session.execute(
            select(Assignment)
            .where(Assignment.teacher_id == teacher.id)
            .order_by(Assignment.due_date, Assignment.id)
        ).scalars().all()
        return [_assignment_read(a) for a in rows]


@teacher_router.post("/assignments", response_model=List[AssignmentRead], status_code=201)
def create_assignment(
    body: AssignmentCreate,
    teacher: Principal = Depends(require_teacher),
) -> List[AssignmentRead]:
    """
    Individual assignments create one row. Class assignments create one
    row per current member of the class; later members are not added.
    """
    with db_session() as session:
        if body.type == "class":
            if body.class_id is None:
                raise HTTPException(status_code=400, detail="class_id is required for class assignments.")
            classroom = _own_class(session, teacher, body.class_id)
            students = list(classroom.students)
            if not students:
                raise HTTPException(status_code=400, detail="Class has no students.")
            class_id = classroom.id
        else:
            if body.student_id is None:
                raise HTTPException(status_code=400, detail="student_id is required for individual assignments.")
            students = [own_student(session, teacher, body.student_id)]
            class_id = None

        rows = [
            Assignment(
                title=body.title,
                description=body.description,
                type=body.type,
                teacher_id=teacher.id,
                class_id=class_id,
                student_id=student.id,
                due_date=body.due_date,
                max_grade=body.max_grade,
            )
            for student in students
        ]
        session.add_all(rows)
        session.flush()
        for row in rows:
            session.refresh(row)
        return [_assignment_read(a) for a in rows]


@teacher_router.delete("/assignments/{assignment_id}", response_model=MessageResponse)
def delete_assignment(assignment_id: int, teacher: Principal = Depends(require_teacher)) -> MessageResponse:
    with db_session() as session:
        assignment = _own_assignment(session, teacher, assignment_id)
        _unlink_goals(session, [assignment.id])
        session.delete(assignment)
    return MessageResponse(message="Assignment deleted.")


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

@teacher_router.get("/goals", response_model=List[GoalRead])
def list_goals(teacher: Principal = Depends(require_teacher)) -> List[GoalRead]:
    with db_session() as session:
        rows = session.execute(
            select(Goal)
            .where(Goal.teacher_id == teacher.id)
            .order_by(Goal.target_date, Goal.id)
        ).scalars().all()
        return [_goal_read(g) for g in rows]


@teacher_router.post("/goals", response_model=GoalRead, status_code=201)
def create_goal(body: GoalCreate, teacher: Principal = Depends(require_teacher)) -> GoalRead:
    with db_session() as session:
        student = own_student(session, teacher, body.student_id)
        if body.assignment_id is not None:
            _own_assignment(session, teacher, body.assignment_id)
        goal = Goal(
            student_id=student.id,
            teacher_id=teacher.id,
            title=body.title,
            description=body.description,
            success_criteria=body.success_criteria,
            target_date=body.target_date,
            category=body.category,
            priority=body.priority,
            assignment_id=body.assignment_id,
        )
        session.add(goal)
        session.flush()
        session.refresh(goal)
        return _goal_read(goal)


@teacher_router.delete("/goals/{goal_id}", response_model=MessageResponse)
def delete_goal(goal_id: int, teacher: Principal = Depends(require_teacher)) -> MessageResponse:
    with db_session() as session:
        session.delete(_own_goal(session, teacher, goal_id))
    return MessageResponse(message="Goal deleted.")


@teacher_router.post("/goals/{goal_id}/link-assignment", response_model=GoalRead)
def link_assignment(
    goal_id: int,
    body: GoalLink,
    teacher: Principal = Depends(require_teacher),
) -> GoalRead:
    with db_session() as session:
        goal = _own_goal(session, teacher, goal_id)
        goal.assignment_id = _own_assignment(session, teacher, body.assignment_id).id
        session.flush()
        return _goal_read(goal)


@teacher_router.delete("/goals/{goal_id}/link-assignment", response_model=GoalRead)
def unlink_assignment(goal_id: int, teacher: Principal = Depends(require_teacher)) -> GoalRead:
    with db_session() as session:
        goal = _own_goal(session, teacher, goal_id)
        goal.assignment_id = None
        session.flush()
        return _goal_read(goal)


# ---------------------------------------------------------------------------
# Student views
# ---------------------------------------------------------------------------

@student_router.get("/assignments", response_model=List[AssignmentRead])
def my_assignments(student: Principal = Depends(require_student)) -> List[AssignmentRead]:
    with db_session() as session:
        rows = session.execute(
            select(Assignment)
            .where(Assignment.student_id == student.id)
            .order_by(Assignment.due_date, Assignment.id)
        ).scalars().all()
        return [_assignment_read(a) for a in rows]


@student_router.get("/goals", response_model=List[GoalRead])
def my_goals(student: Principal = Depends(require_student)) -> List[GoalRead]:
    with db_session() as session:
        rows = session.execute(
            select(Goal)
            .where(Goal.student_id == student.id)
            .order_by(Goal.target_date, Goal.id)
        ).scalars().all()
        return [_goal_read(g) for g in rows]


@student_router.patch("/goals/{goal_id}", response_model=GoalRead)
def update_my_goal(
    goal_id: int,
    body: GoalProgress,
    student: Principal = Depends(require_student),
) -> GoalRead:
    with db_session() as session:
        goal = session.get(Goal, goal_id)
        if not goal or goal.student_id != student.id:
            raise HTTPException(status_code=404, detail="Goal not found.")
        goal.apply_progress(status=body.status, progress=body.progress)
        session.flush()
        return _goal_read(goal)
