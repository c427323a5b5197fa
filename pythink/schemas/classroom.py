# pythink/schemas/classroom.py
from datetime import datetime

from pydantic import BaseModel, Field


class ClassroomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ClassroomUpdate(BaseModel):
    daily_ai_limit: int = Field(ge=0)


class ClassroomPublic(BaseModel):
    id: str
    name: str
    teacher_id: int
    join_code: str
    daily_ai_limit: int
    created_at: datetime | None = None
    student_count: int = 0

    model_config = {"from_attributes": True}


class JoinRequest(BaseModel):
    join_code: str
    student_number: str | None = None


class JoinResponse(BaseModel):
    id: str
    name: str
    join_code: str


class RosterNumberUpdate(BaseModel):
    student_number: str | None = Field(default=None, max_length=20)


class RosterEntry(BaseModel):
    id: int
    name: str
    email: str
    student_number: str | None = None
    joined_at: datetime | None = None


class AssignmentCreate(BaseModel):
    problem_id: int
    ai_level: int = Field(default=2, ge=0, le=4)
    gallery_enabled: bool = False
    sort_order: int | None = None


class AssignmentUpdate(BaseModel):
    ai_level: int | None = Field(default=None, ge=0, le=4)
    gallery_enabled: bool | None = None
    is_active: bool | None = None
    sort_order: int | None = None


class AssignmentPublic(BaseModel):
    classroom_id: str
    problem_id: int
    ai_level: int
    gallery_enabled: bool
    is_active: bool
    sort_order: int

    model_config = {"from_attributes": True}
