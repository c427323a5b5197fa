# pythink/schemas/submission.py
from datetime import datetime
from decimal import Decimal
from typing import Any, List

from pydantic import BaseModel, Field


class SubmissionCreate(BaseModel):
    problem_id: int
    classroom_id: str | None = None
    code: str = Field(min_length=1)
    output: str = ""
    passed: bool = False
    test_results: List[Any] = []
    approach_tag: str | None = None


class ReflectionUpdate(BaseModel):
    reflection: str = Field(min_length=1)


class FeedbackUpdate(BaseModel):
    """Teacher review of a submission."""
    score: Decimal | None = None
    grade: str | None = Field(default=None, max_length=10)
    feedback: str | None = None


class SubmissionPublic(BaseModel):
    id: int
    user_id: int
    problem_id: int
    classroom_id: str | None = None
    code: str
    output: str
    passed: bool
    is_final: bool
    approach_tag: str | None = None
    reflection: str | None = None

    teacher_score: Decimal | None = None
    teacher_grade: str | None = None
    teacher_feedback: str | None = None
    reviewed_at: datetime | None = None

    submitted_at: datetime | None = None

    model_config = {"from_attributes": True}


class GalleryEntry(BaseModel):
    id: int
    student_name: str
    code: str
    approach_tag: str | None = None
    submitted_at: datetime | None = None


class GalleryAnalysis(BaseModel):
    analysis: str | None = None
    message: str | None = None


class ReflectionRow(BaseModel):
    """A student's reflection as listed for the teacher."""
    id: int
    reflection: str
    submitted_at: datetime | None = None
    passed: bool
    student_id: int
    student_name: str
    student_number: str | None = None
    problem_id: int
    problem_title: str
    difficulty: int
