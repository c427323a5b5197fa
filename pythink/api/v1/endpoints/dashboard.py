# pythink/api/v1/endpoints/dashboard.py
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pythink.core.security import get_current_teacher
from pythink.db.session import get_db
from pythink.models.user import User
from pythink.schemas.dashboard import (
    AIUsageResponse,
    CellOut,
    ConversationSummaryRow,
    MatrixResponse,
    OverviewResponse,
    ProblemOut,
    StudentOut,
    StudentProgress,
)
from pythink.schemas.submission import FeedbackUpdate, SubmissionPublic
from pythink.services import dashboard_service, submission_service
from pythink.services.dashboard_service import TeacherContext
from pythink.services.progress_matrix import (
    CellRecord,
    MatrixView,
    ProblemSort,
    SortDirection,
    StudentOrder,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _context(classroom_id: str, teacher: User) -> TeacherContext:
    return TeacherContext(teacher_id=teacher.id, classroom_id=classroom_id)


def _cell_out(cell: CellRecord) -> CellOut:
    return CellOut(
        status=cell.status.value,
        ai_used=cell.ai_used,
        ai_message_count=cell.ai_message_count,
        cheating_flag=cell.cheating_flag,
        teacher_score=float(cell.teacher_score) if cell.teacher_score is not None else None,
        teacher_grade=cell.teacher_grade,
        has_feedback=cell.has_feedback,
    )


@router.get("/matrix/{classroom_id}", response_model=MatrixResponse)
def get_matrix(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
    search: str = "",
    filters: List[Literal["all", "struggling", "cheating"]] = Query(default=[], alias="filter"),
    sort_problem: int | None = None,
    direction: SortDirection = SortDirection.ASC,
    order: StudentOrder = StudentOrder.NUMBER,
):
    """
    Student x problem grid. `filter` may be repeated; selected filters
    are combined with AND after the search. `order` applies while no
    problem column is sorted.
    """
    view = MatrixView(
        search=search,
        struggling_only="struggling" in filters,
        cheating_only="cheating" in filters,
        sort=ProblemSort(sort_problem, direction) if sort_problem is not None else None,
        order=order,
    )
    config = dashboard_service.matrix_config_from_settings()
    matrix, visible = dashboard_service.load_matrix_view(
        db, _context(classroom_id, current_teacher), view, config=config
    )
    return MatrixResponse(
        problems=[
            ProblemOut(id=p.id, title=p.title, difficulty=p.difficulty, category=p.category)
            for p in matrix.problems
        ],
        students=[
            StudentOut(id=s.id, name=s.name, roster_number=s.roster_number)
            for s in matrix.students
        ],
        cells={key: _cell_out(cell) for key, cell in matrix.cells.items()},
        visible_student_ids=[s.id for s in visible],
        keywords_version=config.keywords_version,
    )


@router.get("/overview/{classroom_id}", response_model=OverviewResponse)
def get_overview(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    return dashboard_service.classroom_overview(db, _context(classroom_id, current_teacher))


@router.get("/students/{classroom_id}", response_model=List[StudentProgress])
def get_student_progress(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    return dashboard_service.student_progress(db, _context(classroom_id, current_teacher))


@router.get("/ai-summaries/{classroom_id}", response_model=List[ConversationSummaryRow])
def get_ai_summaries(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    return dashboard_service.conversation_summaries(db, _context(classroom_id, current_teacher))


@router.get("/ai-usage/{classroom_id}", response_model=AIUsageResponse)
def get_ai_usage(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
    period: Literal["day", "week", "month"] = "day",
):
    return dashboard_service.ai_usage(
        db, _context(classroom_id, current_teacher), period=period
    )


@router.put("/feedback/{submission_id}", response_model=SubmissionPublic)
def save_feedback(
    submission_id: int,
    feedback_in: FeedbackUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    Teacher score / grade / comment. The pass flag is not touched.
    """
    sub = submission_service.get_submission(db, submission_id)
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission_service.save_feedback(
        db, submission=sub, teacher=current_teacher, feedback_in=feedback_in
    )
