# pythink/api/v1/endpoints/problems.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pythink.db.session import get_db
from pythink.models.user import User
from pythink.schemas.problem import (
    ProblemCreate,
    ProblemGenerateRequest,
    ProblemPublic,
    ProblemReviseRequest,
    ProblemStatusUpdate,
    ProblemUpdate,
)
from pythink.services import problem_service
from pythink.core.security import get_current_teacher, get_current_user

router = APIRouter(prefix="/problems", tags=["problems"])


@router.post("/", response_model=ProblemPublic, status_code=status.HTTP_201_CREATED)
def create_problem(
    obj_in: ProblemCreate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    Teacher creates a problem.
    """
    p = problem_service.create_problem(db, author=current_teacher, obj_in=obj_in)
    return problem_service.problem_to_dict(p)


@router.post("/generate", response_model=List[ProblemPublic], status_code=status.HTTP_201_CREATED)
def generate_problems(
    obj_in: ProblemGenerateRequest,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    Teacher asks the AI for problem drafts; valid ones are saved as drafts.
    """
    ps = problem_service.generate_problems(db, author=current_teacher, obj_in=obj_in)
    return [problem_service.problem_to_dict(p) for p in ps]


@router.get("/", response_model=List[ProblemPublic])
def list_problems(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    difficulty: int | None = None,
    category: str | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """
    Approved problems (students and teachers).
    """
    ps = problem_service.list_approved_problems(
        db, difficulty=difficulty, category=category, skip=skip, limit=limit
    )
    return [problem_service.problem_to_dict(p) for p in ps]


@router.get("/mine", response_model=List[ProblemPublic])
def list_my_problems(
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
    skip: int = 0,
    limit: int = 100,
):
    ps = problem_service.list_problems_for_author(
        db, author=current_teacher, skip=skip, limit=limit
    )
    return [problem_service.problem_to_dict(p) for p in ps]


@router.get("/{problem_id}", response_model=ProblemPublic)
def get_problem(
    problem_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    p = problem_service.get_problem(db, problem_id)
    if not p:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Problem not found",
        )
    return problem_service.problem_to_dict(p)


@router.put("/{problem_id}", response_model=ProblemPublic)
def update_problem(
    problem_id: int,
    obj_in: ProblemUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    p = problem_service.get_problem(db, problem_id)
    if not p:
        raise HTTPException(status_code=404, detail="Problem not found")

    if p.author_id != current_teacher.id:
        raise HTTPException(status_code=403, detail="Not allowed to edit this problem")

    p = problem_service.update_problem(db, db_obj=p, obj_in=obj_in)
    return problem_service.problem_to_dict(p)


@router.delete("/{problem_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_problem(
    problem_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    p = problem_service.get_problem(db, problem_id)
    if not p:
        raise HTTPException(status_code=404, detail="Problem not found")

    if p.author_id != current_teacher.id:
        raise HTTPException(status_code=403, detail="Not allowed to delete this problem")

    problem_service.delete_problem(db, db_obj=p)
    return None


def _get_own_problem(db: Session, problem_id: int, teacher: User):
    p = problem_service.get_problem(db, problem_id)
    if not p:
        raise HTTPException(status_code=404, detail="Problem not found")

    if p.author_id != teacher.id:
        raise HTTPException(status_code=403, detail="Not allowed to edit this problem")
    return p


@router.post("/{problem_id}/revise", response_model=ProblemPublic)
def revise_problem(
    problem_id: int,
    obj_in: ProblemReviseRequest,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    AI rewrite of the problem from the teacher's feedback; status returns to draft.
    """
    p = _get_own_problem(db, problem_id, current_teacher)
    p = problem_service.revise_problem(db, db_obj=p, feedback=obj_in.feedback)
    return problem_service.problem_to_dict(p)


@router.patch("/{problem_id}/status", response_model=ProblemPublic)
def update_problem_status(
    problem_id: int,
    obj_in: ProblemStatusUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    p = _get_own_problem(db, problem_id, current_teacher)
    p = problem_service.update_problem(
        db, db_obj=p, obj_in=ProblemUpdate(status=obj_in.status)
    )
    return problem_service.problem_to_dict(p)
