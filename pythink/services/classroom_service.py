# pythink/services/classroom_service.py
import logging
import random
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pythink.core.config import settings
from pythink.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from pythink.models.classroom import Classroom, ClassroomMember, ClassroomProblem
from pythink.models.problem import Problem
from pythink.models.user import User
from pythink.schemas.classroom import ClassroomCreate
from pythink.services.progress_matrix import roster_number_key

logger = logging.getLogger(__name__)

_JOIN_CODE_ATTEMPTS = 20


def generate_join_code(db: Session) -> str:
    """5-digit code not used by any existing classroom."""
    for _ in range(_JOIN_CODE_ATTEMPTS):
        code = str(random.randint(10000, 99999))
        exists = db.query(Classroom.id).filter(Classroom.join_code == code).first()
        if exists is None:
            return code
    raise ConflictError("could not allocate a free join code")


def create_classroom(
    db: Session,
    *,
    teacher: User,
    obj_in: ClassroomCreate,
    default_ai_level: int | None = None,
) -> Classroom:
    """
    Create a classroom and pre-assign every approved difficulty-1 problem
    so students have something to start with.
    """
    name = obj_in.name.strip()
    duplicate = (
        db.query(Classroom)
        .filter(Classroom.teacher_id == teacher.id, Classroom.name == name)
        .first()
    )
    if duplicate:
        raise ConflictError(f"classroom '{name}' already exists")

    ai_level = settings.DEFAULT_AI_LEVEL if default_ai_level is None else default_ai_level

    classroom = Classroom(
        name=name,
        teacher_id=teacher.id,
        join_code=generate_join_code(db),
        daily_ai_limit=settings.DEFAULT_DAILY_AI_LIMIT,
    )
    db.add(classroom)
    db.flush()

    beginner_problems = (
        db.query(Problem)
        .filter(Problem.status == "approved", Problem.difficulty == 1)
        .order_by(Problem.id.asc())
        .all()
    )
    for order, problem in enumerate(beginner_problems):
        db.add(
            ClassroomProblem(
                classroom_id=classroom.id,
                problem_id=problem.id,
                ai_level=ai_level,
                gallery_enabled=False,
                is_active=True,
                sort_order=order,
            )
        )

    db.commit()
    db.refresh(classroom)
    logger.info(
        f"Teacher {teacher.id} created classroom {classroom.id} "
        f"with {len(beginner_problems)} starter problems"
    )
    return classroom


def get_classroom(db: Session, classroom_id: str) -> Optional[Classroom]:
    return db.get(Classroom, classroom_id)


def get_owned_classroom(db: Session, *, classroom_id: str, teacher_id: int) -> Classroom:
    classroom = get_classroom(db, classroom_id)
    if classroom is None:
        raise NotFoundError("classroom not found")
    if classroom.teacher_id != teacher_id:
        raise PermissionDeniedError("not the owner of this classroom")
    return classroom


def count_students(db: Session, classroom_id: str) -> int:
    return (
        db.query(func.count(ClassroomMember.id))
        .filter(ClassroomMember.classroom_id == classroom_id)
        .scalar()
        or 0
    )


def list_classrooms_for_teacher(db: Session, *, teacher: User) -> List[Tuple[Classroom, int]]:
    rows = (
        db.query(Classroom, func.count(ClassroomMember.id))
        .outerjoin(ClassroomMember, ClassroomMember.classroom_id == Classroom.id)
        .filter(Classroom.teacher_id == teacher.id)
        .group_by(Classroom.id)
        .order_by(Classroom.created_at.asc())
        .all()
    )
    return [(classroom, count) for classroom, count in rows]


def get_membership(db: Session, *, classroom_id: str, user_id: int) -> Optional[ClassroomMember]:
    return (
        db.query(ClassroomMember)
        .filter(
            ClassroomMember.classroom_id == classroom_id,
            ClassroomMember.user_id == user_id,
        )
        .first()
    )


def join_classroom(
    db: Session,
    *,
    student: User,
    join_code: str,
    student_number: str | None = None,
) -> Classroom:
    """
    Enroll a student by join code. Joining twice keeps the existing
    membership untouched.
    """
    classroom = (
        db.query(Classroom).filter(Classroom.join_code == join_code.strip()).first()
    )
    if classroom is None:
        raise NotFoundError("invalid join code")

    if get_membership(db, classroom_id=classroom.id, user_id=student.id) is None:
        db.add(
            ClassroomMember(
                classroom_id=classroom.id,
                user_id=student.id,
                student_number=(student_number or "").strip() or None,
            )
        )
        db.commit()
        logger.info(f"Student {student.id} joined classroom {classroom.id}")

    return classroom


def update_roster_number(
    db: Session,
    *,
    classroom_id: str,
    student_id: int,
    actor: User,
    student_number: str | None,
) -> ClassroomMember:
    """The student may change their own number; so may the owning teacher."""
    classroom = get_classroom(db, classroom_id)
    if classroom is None:
        raise NotFoundError("classroom not found")

    if actor.id != student_id and actor.id != classroom.teacher_id:
        raise PermissionDeniedError("not allowed to change this roster number")

    member = get_membership(db, classroom_id=classroom_id, user_id=student_id)
    if member is None:
        raise NotFoundError("student is not enrolled in this classroom")

    member.student_number = (student_number or "").strip() or None
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def unenroll_student(db: Session, *, classroom: Classroom, student_id: int) -> None:
    member = get_membership(db, classroom_id=classroom.id, user_id=student_id)
    if member is None:
        raise NotFoundError("student is not enrolled in this classroom")
    db.delete(member)
    db.commit()
    logger.info(f"Student {student_id} removed from classroom {classroom.id}")


def list_roster(db: Session, classroom_id: str) -> List[Tuple[User, ClassroomMember]]:
    """Enrolled students ordered by roster number, then name."""
    rows = (
        db.query(User, ClassroomMember)
        .join(ClassroomMember, ClassroomMember.user_id == User.id)
        .filter(ClassroomMember.classroom_id == classroom_id)
        .all()
    )
    return sorted(rows, key=lambda row: roster_number_key(row[1].student_number, row[0].name))


def update_daily_ai_limit(db: Session, *, classroom: Classroom, daily_ai_limit: int) -> Classroom:
    classroom.daily_ai_limit = daily_ai_limit
    db.add(classroom)
    db.commit()
    db.refresh(classroom)
    return classroom
