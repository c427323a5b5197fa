# pythink/schemas/problem.py
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

Category = Literal["output", "logic", "loop", "string", "list", "function", "algorithm"]
ProblemStatus = Literal["draft", "review", "approved", "revision", "rejected"]


class ProblemTestCase(BaseModel):
    input: str = ""
    expected_output: str


class ProblemApproach(BaseModel):
    tag: str
    description: str = ""


class ProblemBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str
    difficulty: int = Field(default=1, ge=1, le=5)
    category: Category
    test_cases: List[ProblemTestCase] = []
    starter_code: str = ""
    hints: List[str] = []
    expected_approaches: List[ProblemApproach] = []
    explanation: str | None = None


class ProblemCreate(ProblemBase):
    status: ProblemStatus = "draft"


class ProblemUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    difficulty: int | None = Field(default=None, ge=1, le=5)
    category: Category | None = None
    test_cases: List[ProblemTestCase] | None = None
    starter_code: str | None = None
    hints: List[str] | None = None
    expected_approaches: List[ProblemApproach] | None = None
    explanation: str | None = None
    status: ProblemStatus | None = None


class ProblemPublic(ProblemBase):
    id: int
    author_id: int | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProblemGenerateRequest(BaseModel):
    """Teacher request for AI-drafted problems."""
    prompt: str = Field(min_length=1)
    count: int = Field(default=3, ge=1, le=5)
    difficulty: int | None = Field(default=None, ge=1, le=5)
    category: Category | None = None
    # existing problem whose style the drafts should follow
    reference_problem_id: int | None = None
    include_explanation: bool = False


class ProblemReviseRequest(BaseModel):
    feedback: str = Field(min_length=1)


class ProblemStatusUpdate(BaseModel):
    status: ProblemStatus
