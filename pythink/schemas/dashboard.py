# pythink/schemas/dashboard.py
from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer

CellStatusName = Literal["NOT_ATTEMPTED", "IN_PROGRESS", "FAILED", "PASSED"]


class ProblemOut(BaseModel):
    id: int
    title: str
    difficulty: int
    category: str


class StudentOut(BaseModel):
    id: int
    name: str
    roster_number: str | None = Field(default=None, alias="rosterNumber")

    model_config = ConfigDict(populate_by_name=True)


class CellOut(BaseModel):
    """One student x problem cell as sent to the dashboard."""

    status: CellStatusName
    ai_used: bool = Field(default=False, alias="aiUsed")
    # only sent when ai_used
    ai_message_count: int | None = Field(default=None, alias="aiMessageCount")
    cheating_flag: bool = Field(default=False, alias="cheatingFlag")
    teacher_score: float | None = Field(default=None, alias="teacherScore")
    teacher_grade: str | None = Field(default=None, alias="teacherGrade")
    has_feedback: bool = Field(default=False, alias="hasFeedback")

    model_config = ConfigDict(populate_by_name=True)

    @model_serializer(mode="wrap")
    def _drop_message_count_without_ai(self, handler):
        data = handler(self)
        if not self.ai_used:
            data.pop("aiMessageCount", None)
            data.pop("ai_message_count", None)
        return data


class MatrixResponse(BaseModel):
    problems: List[ProblemOut]
    students: List[StudentOut]
    # keyed "<studentId>:<problemId>", one entry per roster student x assigned problem
    cells: Dict[str, CellOut]
    # student ids after search / filter / sort, in display order
    visible_student_ids: List[int]
    keywords_version: str


class OverviewResponse(BaseModel):
    total_students: int
    total_submissions: int
    passed_submissions: int
    total_ai_conversations: int


class StudentProgress(BaseModel):
    id: int
    name: str
    email: str
    student_number: str | None = None
    solved_count: int
    submission_count: int
    ai_conversation_count: int
    last_activity: datetime | None = None


class ConversationSummaryRow(BaseModel):
    id: int
    user_id: int
    student_name: str
    problem_id: int
    problem_title: str
    summary: str | None = None
    message_count: int
    updated_at: datetime | None = None


class StudentUsage(BaseModel):
    user_id: int
    name: str
    student_number: str | None = None
    call_count: int


class DailyUsage(BaseModel):
    date: str
    call_count: int


class AIUsageResponse(BaseModel):
    daily_limit: int
    total_calls: int
    per_student: List[StudentUsage]
    daily_breakdown: List[DailyUsage]
