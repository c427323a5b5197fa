# pythink/services/dashboard_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pythink.core.config import Settings, settings
from pythink.core.errors import ClassroomDataUnavailableError
from pythink.models.classroom import Classroom, ClassroomMember
from pythink.models.conversation import AIConversation, AIUsageLog
from pythink.models.problem import Problem
from pythink.models.submission import Submission
from pythink.models.user import User
from pythink.services import (
    assignment_service,
    classroom_service,
    conversation_service,
    submission_service,
)
from pythink.services.progress_matrix import (
    ConversationRecord,
    MatrixConfig,
    MatrixView,
    ProblemRow,
    ProgressMatrix,
    StudentRow,
    SubmissionRecord,
    apply_view,
    build_matrix,
    roster_number_key,
)

logger = logging.getLogger(__name__)

_SUMMARY_LIMIT = 50


@dataclass(frozen=True)
class TeacherContext:
    """Who is asking, about which classroom."""

    teacher_id: int
    classroom_id: str


def matrix_config_from_settings(cfg: Settings = settings) -> MatrixConfig:
    return MatrixConfig(
        cheating_keywords=tuple(cfg.CHEATING_KEYWORDS),
        struggling_threshold=cfg.STRUGGLING_THRESHOLD,
        keywords_version=cfg.CHEATING_KEYWORDS_VERSION,
    )


class ClassroomDataSource:
    """
    The four lookups the matrix is built from. Each returns records in
    the shape progress_matrix expects.
    """

    def __init__(self, db: Session):
        self.db = db

    def roster(self, classroom_id: str) -> List[StudentRow]:
        return [
            StudentRow(id=user.id, name=user.name, roster_number=member.student_number)
            for user, member in classroom_service.list_roster(self.db, classroom_id)
        ]

    def assigned_problems(self, classroom_id: str) -> List[ProblemRow]:
        return [
            ProblemRow(
                id=problem.id,
                title=problem.title,
                difficulty=problem.difficulty,
                category=problem.category,
            )
            for _, problem in assignment_service.list_active_assignments(self.db, classroom_id)
        ]

    def final_submissions(self, classroom_id: str) -> List[SubmissionRecord]:
        return [
            SubmissionRecord(
                student_id=sub.user_id,
                problem_id=sub.problem_id,
                passed=bool(sub.passed),
                submitted_at=sub.submitted_at,
                teacher_score=sub.teacher_score,
                teacher_grade=sub.teacher_grade,
                teacher_feedback=sub.teacher_feedback,
            )
            for sub in submission_service.list_final_submissions_for_classroom(self.db, classroom_id)
        ]

    def conversations(self, classroom_id: str) -> List[ConversationRecord]:
        return [
            ConversationRecord(
                student_id=conv.user_id,
                problem_id=conv.problem_id,
                message_count=conv.message_count or 0,
                messages=conv.messages_json,
            )
            for conv in conversation_service.list_conversations_for_classroom(self.db, classroom_id)
        ]


def _authorize(db: Session, ctx: TeacherContext) -> Classroom:
    return classroom_service.get_owned_classroom(
        db, classroom_id=ctx.classroom_id, teacher_id=ctx.teacher_id
    )


def load_matrix(
    db: Session,
    ctx: TeacherContext,
    *,
    config: MatrixConfig | None = None,
    source: ClassroomDataSource | None = None,
) -> ProgressMatrix:
    """
    Fetch everything the grid needs and build it. Any lookup failure
    fails the whole request; a partial grid is never returned.
    """
    _authorize(db, ctx)
    config = config or matrix_config_from_settings()
    source = source or ClassroomDataSource(db)

    try:
        problems = source.assigned_problems(ctx.classroom_id)
        students = source.roster(ctx.classroom_id)
        submissions = source.final_submissions(ctx.classroom_id)
        conversations = source.conversations(ctx.classroom_id)
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.error(
            f"Could not load classroom data for {ctx.classroom_id}: {e}",
            exc_info=True,
        )
        raise ClassroomDataUnavailableError("could not load classroom data") from e

    return build_matrix(problems, students, submissions, conversations, config)


def load_matrix_view(
    db: Session,
    ctx: TeacherContext,
    view: MatrixView,
    *,
    config: MatrixConfig | None = None,
    source: ClassroomDataSource | None = None,
) -> Tuple[ProgressMatrix, List[StudentRow]]:
    config = config or matrix_config_from_settings()
    matrix = load_matrix(db, ctx, config=config, source=source)
    return matrix, apply_view(matrix, view, config)


def classroom_overview(db: Session, ctx: TeacherContext) -> Dict[str, int]:
    _authorize(db, ctx)
    cid = ctx.classroom_id

    total_submissions = (
        db.query(func.count(Submission.id))
        .filter(Submission.classroom_id == cid, Submission.is_final.is_(True))
        .scalar()
        or 0
    )
    passed_submissions = (
        db.query(func.count(Submission.id))
        .filter(
            Submission.classroom_id == cid,
            Submission.is_final.is_(True),
            Submission.passed.is_(True),
        )
        .scalar()
        or 0
    )
    ai_conversations = (
        db.query(func.count(AIConversation.id))
        .filter(AIConversation.classroom_id == cid)
        .scalar()
        or 0
    )

    return {
        "total_students": classroom_service.count_students(db, cid),
        "total_submissions": total_submissions,
        "passed_submissions": passed_submissions,
        "total_ai_conversations": ai_conversations,
    }


def student_progress(db: Session, ctx: TeacherContext) -> List[Dict[str, Any]]:
    """Per-student counters for the roster table."""
    _authorize(db, ctx)
    cid = ctx.classroom_id

    solved = dict(
        db.query(Submission.user_id, func.count(func.distinct(Submission.problem_id)))
        .filter(
            Submission.classroom_id == cid,
            Submission.is_final.is_(True),
            Submission.passed.is_(True),
        )
        .group_by(Submission.user_id)
        .all()
    )
    submitted = {
        user_id: (count, last)
        for user_id, count, last in (
            db.query(
                Submission.user_id,
                func.count(Submission.id),
                func.max(Submission.submitted_at),
            )
            .filter(Submission.classroom_id == cid, Submission.is_final.is_(True))
            .group_by(Submission.user_id)
            .all()
        )
    }
    conversations = dict(
        db.query(AIConversation.user_id, func.count(AIConversation.id))
        .filter(AIConversation.classroom_id == cid)
        .group_by(AIConversation.user_id)
        .all()
    )

    rows = []
    for user, member in classroom_service.list_roster(db, cid):
        count, last = submitted.get(user.id, (0, None))
        rows.append(
            {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "student_number": member.student_number,
                "solved_count": solved.get(user.id, 0),
                "submission_count": count,
                "ai_conversation_count": conversations.get(user.id, 0),
                "last_activity": last,
            }
        )
    return rows


def conversation_summaries(db: Session, ctx: TeacherContext) -> List[Dict[str, Any]]:
    _authorize(db, ctx)
    rows = (
        db.query(AIConversation, User.name, Problem.title)
        .join(User, User.id == AIConversation.user_id)
        .join(Problem, Problem.id == AIConversation.problem_id)
        .filter(AIConversation.classroom_id == ctx.classroom_id)
        .order_by(AIConversation.updated_at.desc(), AIConversation.id.desc())
        .limit(_SUMMARY_LIMIT)
        .all()
    )
    return [
        {
            "id": conv.id,
            "user_id": conv.user_id,
            "student_name": student_name,
            "problem_id": conv.problem_id,
            "problem_title": problem_title,
            "summary": conv.summary,
            "message_count": conv.message_count,
            "updated_at": conv.updated_at,
        }
        for conv, student_name, problem_title in rows
    ]


_PERIOD_DAYS = {"day": 0, "week": 7, "month": 30}


def _period_start(period: str, now: datetime) -> datetime:
    today = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return today - timedelta(days=_PERIOD_DAYS.get(period, 0))


def ai_usage(
    db: Session,
    ctx: TeacherContext,
    *,
    period: str = "day",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """AI coach call counts: total for the period, per student, and per day for the last week."""
    classroom = _authorize(db, ctx)
    now = now or datetime.now(timezone.utc)
    cid = ctx.classroom_id
    start = _period_start(period, now)

    total = (
        db.query(func.count(AIUsageLog.id))
        .filter(AIUsageLog.classroom_id == cid, AIUsageLog.created_at >= start)
        .scalar()
        or 0
    )

    per_student_rows = (
        db.query(
            AIUsageLog.user_id,
            User.name,
            ClassroomMember.student_number,
            func.count(AIUsageLog.id),
        )
        .join(User, User.id == AIUsageLog.user_id)
        .outerjoin(
            ClassroomMember,
            (ClassroomMember.classroom_id == AIUsageLog.classroom_id)
            & (ClassroomMember.user_id == AIUsageLog.user_id),
        )
        .filter(AIUsageLog.classroom_id == cid, AIUsageLog.created_at >= start)
        .group_by(AIUsageLog.user_id, User.name, ClassroomMember.student_number)
        .all()
    )
    per_student = sorted(
        (
            {
                "user_id": user_id,
                "name": name,
                "student_number": number,
                "call_count": count,
            }
            for user_id, name, number, count in per_student_rows
        ),
        key=lambda r: (-r["call_count"], roster_number_key(r["student_number"], r["name"])),
    )

    week_start = _period_start("week", now)
    daily: Dict[str, int] = {}
    for (created_at,) in (
        db.query(AIUsageLog.created_at)
        .filter(AIUsageLog.classroom_id == cid, AIUsageLog.created_at >= week_start)
        .all()
    ):
        if created_at is None:
            continue
        day = created_at.date().isoformat()
        daily[day] = daily.get(day, 0) + 1

    return {
        "daily_limit": classroom.daily_ai_limit,
        "total_calls": total,
        "per_student": per_student,
        "daily_breakdown": [
            {"date": day, "call_count": count} for day, count in sorted(daily.items())
        ],
    }
