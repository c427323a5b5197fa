# pythink/api/v1/endpoints/classrooms.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pythink.core.security import get_current_student, get_current_teacher, get_current_user
from pythink.db.session import get_db
from pythink.models.classroom import Classroom
from pythink.models.user import User
from pythink.schemas.classroom import (
    AssignmentCreate,
    AssignmentPublic,
    AssignmentUpdate,
    ClassroomCreate,
    ClassroomPublic,
    ClassroomUpdate,
    JoinRequest,
    JoinResponse,
    RosterEntry,
    RosterNumberUpdate,
)
from pythink.services import assignment_service, classroom_service

router = APIRouter(prefix="/classrooms", tags=["classrooms"])


def _classroom_public(classroom: Classroom, student_count: int) -> ClassroomPublic:
    return ClassroomPublic(
        id=classroom.id,
        name=classroom.name,
        teacher_id=classroom.teacher_id,
        join_code=classroom.join_code,
        daily_ai_limit=classroom.daily_ai_limit,
        created_at=classroom.created_at,
        student_count=student_count,
    )


@router.post("/", response_model=ClassroomPublic, status_code=status.HTTP_201_CREATED)
def create_classroom(
    obj_in: ClassroomCreate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom = classroom_service.create_classroom(db, teacher=current_teacher, obj_in=obj_in)
    return _classroom_public(classroom, 0)


@router.get("/mine", response_model=List[ClassroomPublic])
def list_my_classrooms(
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    rows = classroom_service.list_classrooms_for_teacher(db, teacher=current_teacher)
    return [_classroom_public(classroom, count) for classroom, count in rows]


@router.post("/join", response_model=JoinResponse)
def join_classroom(
    payload: JoinRequest,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    classroom = classroom_service.join_classroom(
        db,
        student=current_student,
        join_code=payload.join_code,
        student_number=payload.student_number,
    )
    return JoinResponse(id=classroom.id, name=classroom.name, join_code=classroom.join_code)


@router.get("/{classroom_id}", response_model=ClassroomPublic)
def get_classroom(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    classroom = classroom_service.get_classroom(db, classroom_id)
    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")
    return _classroom_public(classroom, classroom_service.count_students(db, classroom_id))


@router.put("/{classroom_id}", response_model=ClassroomPublic)
def update_classroom(
    classroom_id: str,
    obj_in: ClassroomUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom = classroom_service.get_owned_classroom(
        db, classroom_id=classroom_id, teacher_id=current_teacher.id
    )
    classroom = classroom_service.update_daily_ai_limit(
        db, classroom=classroom, daily_ai_limit=obj_in.daily_ai_limit
    )
    return _classroom_public(classroom, classroom_service.count_students(db, classroom_id))


@router.get("/{classroom_id}/students", response_model=List[RosterEntry])
def list_students(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom_service.get_owned_classroom(
        db, classroom_id=classroom_id, teacher_id=current_teacher.id
    )
    return [
        RosterEntry(
            id=user.id,
            name=user.name,
            email=user.email,
            student_number=member.student_number,
            joined_at=member.joined_at,
        )
        for user, member in classroom_service.list_roster(db, classroom_id)
    ]


@router.put("/{classroom_id}/students/{student_id}/number", response_model=RosterEntry)
def update_student_number(
    classroom_id: str,
    student_id: int,
    payload: RosterNumberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Student edits their own roster number, or the owning teacher edits anyone's.
    """
    member = classroom_service.update_roster_number(
        db,
        classroom_id=classroom_id,
        student_id=student_id,
        actor=current_user,
        student_number=payload.student_number,
    )
    student = db.get(User, student_id)
    return RosterEntry(
        id=student.id,
        name=student.name,
        email=student.email,
        student_number=member.student_number,
        joined_at=member.joined_at,
    )


@router.delete("/{classroom_id}/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_student(
    classroom_id: str,
    student_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom = classroom_service.get_owned_classroom(
        db, classroom_id=classroom_id, teacher_id=current_teacher.id
    )
    classroom_service.unenroll_student(db, classroom=classroom, student_id=student_id)
    return None


@router.get("/{classroom_id}/problems", response_model=List[AssignmentPublic])
def list_assignments(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    classroom = classroom_service.get_classroom(db, classroom_id)
    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")
    if classroom.teacher_id != current_user.id and not classroom_service.get_membership(
        db, classroom_id=classroom_id, user_id=current_user.id
    ):
        raise HTTPException(status_code=403, detail="Not a member of this classroom")
    return [a for a, _ in assignment_service.list_active_assignments(db, classroom_id)]


@router.post("/{classroom_id}/problems", response_model=AssignmentPublic, status_code=status.HTTP_201_CREATED)
def assign_problem(
    classroom_id: str,
    obj_in: AssignmentCreate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom = classroom_service.get_owned_classroom(
        db, classroom_id=classroom_id, teacher_id=current_teacher.id
    )
    return assignment_service.assign_problem(db, classroom=classroom, obj_in=obj_in)


@router.put("/{classroom_id}/problems/{problem_id}", response_model=AssignmentPublic)
def update_assignment(
    classroom_id: str,
    problem_id: int,
    obj_in: AssignmentUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    classroom_service.get_owned_classroom(
        db, classroom_id=classroom_id, teacher_id=current_teacher.id
    )
    assignment = assignment_service.get_assignment(
        db, classroom_id=classroom_id, problem_id=problem_id
    )
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment_service.update_assignment(db, assignment=assignment, obj_in=obj_in)
