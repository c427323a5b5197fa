# pythink/services/assignment_service.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pythink.core.errors import NotFoundError
from pythink.models.classroom import Classroom, ClassroomProblem
from pythink.models.problem import Problem
from pythink.schemas.classroom import AssignmentCreate, AssignmentUpdate

logger = logging.getLogger(__name__)


def get_assignment(db: Session, *, classroom_id: str, problem_id: int) -> Optional[ClassroomProblem]:
    return (
        db.query(ClassroomProblem)
        .filter(
            ClassroomProblem.classroom_id == classroom_id,
            ClassroomProblem.problem_id == problem_id,
        )
        .first()
    )


def assign_problem(
    db: Session,
    *,
    classroom: Classroom,
    obj_in: AssignmentCreate,
) -> ClassroomProblem:
    """
    Assign a problem to a classroom, or re-activate and reconfigure an
    existing assignment.
    """
    if db.get(Problem, obj_in.problem_id) is None:
        raise NotFoundError("problem not found")

    assignment = get_assignment(db, classroom_id=classroom.id, problem_id=obj_in.problem_id)
    if assignment is None:
        sort_order = obj_in.sort_order
        if sort_order is None:
            current_max = (
                db.query(func.max(ClassroomProblem.sort_order))
                .filter(ClassroomProblem.classroom_id == classroom.id)
                .scalar()
            )
            sort_order = 0 if current_max is None else current_max + 1
        assignment = ClassroomProblem(
            classroom_id=classroom.id,
            problem_id=obj_in.problem_id,
            sort_order=sort_order,
        )
    elif obj_in.sort_order is not None:
        assignment.sort_order = obj_in.sort_order

    assignment.ai_level = obj_in.ai_level
    assignment.gallery_enabled = obj_in.gallery_enabled
    assignment.is_active = True

    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info(
        f"Problem {obj_in.problem_id} assigned to classroom {classroom.id} "
        f"(ai_level={assignment.ai_level})"
    )
    return assignment


def update_assignment(
    db: Session,
    *,
    assignment: ClassroomProblem,
    obj_in: AssignmentUpdate,
) -> ClassroomProblem:
    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is not None:
            setattr(assignment, field, value)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def list_active_assignments(db: Session, classroom_id: str) -> List[Tuple[ClassroomProblem, Problem]]:
    return (
        db.query(ClassroomProblem, Problem)
        .join(Problem, Problem.id == ClassroomProblem.problem_id)
        .filter(
            ClassroomProblem.classroom_id == classroom_id,
            ClassroomProblem.is_active.is_(True),
        )
        .order_by(ClassroomProblem.sort_order.asc(), Problem.id.asc())
        .all()
    )


def ai_level_for(db: Session, *, classroom_id: str | None, problem_id: int, default: int) -> int:
    """AI level of the assignment; `default` outside a classroom or for unassigned problems."""
    if not classroom_id:
        return default
    assignment = get_assignment(db, classroom_id=classroom_id, problem_id=problem_id)
    if assignment is None:
        return default
    return assignment.ai_level
