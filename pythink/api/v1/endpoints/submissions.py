# pythink/api/v1/endpoints/submissions.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pythink.db.session import get_db
from pythink.models.user import User
from pythink.schemas.submission import (
    GalleryAnalysis,
    GalleryEntry,
    ReflectionRow,
    ReflectionUpdate,
    SubmissionCreate,
    SubmissionPublic,
)
from pythink.services import submission_service
from pythink.core.security import get_current_student, get_current_teacher, get_current_user

router = APIRouter(prefix="/submissions", tags=["submissions"])


class SnapshotCreate(BaseModel):
    problem_id: int
    classroom_id: str | None = None
    code: str = Field(min_length=1)


@router.post("/", response_model=SubmissionPublic, status_code=status.HTTP_201_CREATED)
def create_submission(
    obj_in: SubmissionCreate,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    """
    Student submits a solution with its test-case result.
    """
    return submission_service.create_submission(db, student=current_student, obj_in=obj_in)


@router.get("/me", response_model=List[SubmissionPublic])
def list_my_submissions(
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
    problem_id: int | None = None,
    skip: int = 0,
    limit: int = 100,
):
    return submission_service.list_submissions_for_student(
        db, student=current_student, problem_id=problem_id, skip=skip, limit=limit
    )


@router.post("/snapshot", status_code=status.HTTP_201_CREATED)
def save_snapshot(
    payload: SnapshotCreate,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    snapshot = submission_service.save_snapshot(
        db,
        student=current_student,
        problem_id=payload.problem_id,
        classroom_id=payload.classroom_id,
        code=payload.code,
    )
    return {"id": snapshot.id}


@router.get("/snapshots")
def list_snapshots(
    problem_id: int,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    """
    Code timeline for one problem, oldest first.
    """
    return [
        {"id": s.id, "code": s.code, "snapshot_at": s.submitted_at}
        for s in submission_service.list_snapshots(
            db, student=current_student, problem_id=problem_id
        )
    ]


@router.get("/gallery/{classroom_id}/{problem_id}", response_model=List[GalleryEntry])
def list_gallery(
    classroom_id: str,
    problem_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = submission_service.list_gallery(
        db, viewer=current_user, classroom_id=classroom_id, problem_id=problem_id
    )
    return [
        GalleryEntry(
            id=sub.id,
            student_name=student_name,
            code=sub.code,
            approach_tag=sub.approach_tag,
            submitted_at=sub.submitted_at,
        )
        for sub, student_name in rows
    ]


@router.post("/gallery/{classroom_id}/{problem_id}/analyze", response_model=GalleryAnalysis)
def analyze_gallery(
    classroom_id: str,
    problem_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    AI comparison of the approaches among the gallery solutions.
    """
    analysis, message = submission_service.analyze_gallery(
        db, viewer=current_user, classroom_id=classroom_id, problem_id=problem_id
    )
    return GalleryAnalysis(analysis=analysis, message=message)


@router.get("/reflections/{classroom_id}", response_model=List[ReflectionRow])
def list_reflections(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    return submission_service.list_reflections_for_classroom(
        db, classroom_id=classroom_id, teacher=current_teacher
    )


@router.get("/{submission_id}", response_model=SubmissionPublic)
def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    sub = submission_service.get_submission(db, submission_id)
    if not sub or sub.user_id != current_student.id:
        raise HTTPException(status_code=404, detail="Submission not found")
    return sub


@router.post("/{submission_id}/reflection", response_model=SubmissionPublic)
def add_reflection(
    submission_id: int,
    payload: ReflectionUpdate,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    sub = submission_service.get_submission(db, submission_id)
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission_service.add_reflection(
        db, submission=sub, student=current_student, reflection=payload.reflection
    )
