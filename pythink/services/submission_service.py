# pythink/services/submission_service.py
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from pythink.core.errors import NotFoundError, PermissionDeniedError
from pythink.models.classroom import ClassroomMember
from pythink.models.problem import Problem
from pythink.models.submission import Submission
from pythink.models.user import User
from pythink.schemas.submission import FeedbackUpdate, SubmissionCreate
from pythink.services import ai_client, assignment_service, classroom_service, problem_service

logger = logging.getLogger(__name__)


def _check_enrollment(db: Session, *, student: User, classroom_id: str | None) -> None:
    if not classroom_id:
        return
    member = classroom_service.get_membership(db, classroom_id=classroom_id, user_id=student.id)
    if member is None:
        raise PermissionDeniedError("not enrolled in this classroom")


def create_submission(
    db: Session,
    *,
    student: User,
    obj_in: SubmissionCreate,
) -> Submission:
    """
    Record a graded attempt. Every call inserts a new final row; the
    pass flag of an existing submission is never rewritten.
    """
    if problem_service.get_problem(db, obj_in.problem_id) is None:
        raise NotFoundError("problem not found")
    _check_enrollment(db, student=student, classroom_id=obj_in.classroom_id)

    submission = Submission(
        user_id=student.id,
        problem_id=obj_in.problem_id,
        classroom_id=obj_in.classroom_id or None,
        code=obj_in.code,
        output=obj_in.output,
        test_results_json=json.dumps(obj_in.test_results, ensure_ascii=False),
        passed=obj_in.passed,
        approach_tag=obj_in.approach_tag,
        is_final=True,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)

    logger.info(
        f"Submission {submission.id} recorded: student={student.id} "
        f"problem={obj_in.problem_id} passed={obj_in.passed}"
    )
    return submission


def save_snapshot(
    db: Session,
    *,
    student: User,
    problem_id: int,
    classroom_id: str | None,
    code: str,
) -> Submission:
    """Autosaved in-progress code; never counted as an attempt."""
    if problem_service.get_problem(db, problem_id) is None:
        raise NotFoundError("problem not found")
    _check_enrollment(db, student=student, classroom_id=classroom_id)

    snapshot = Submission(
        user_id=student.id,
        problem_id=problem_id,
        classroom_id=classroom_id or None,
        code=code,
        passed=False,
        is_final=False,
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    return snapshot


def list_snapshots(db: Session, *, student: User, problem_id: int) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(
            Submission.user_id == student.id,
            Submission.problem_id == problem_id,
            Submission.is_final.is_(False),
        )
        .order_by(Submission.submitted_at.asc(), Submission.id.asc())
        .all()
    )


def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
    return db.get(Submission, submission_id)


def list_submissions_for_student(
    db: Session,
    *,
    student: User,
    problem_id: int | None = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Submission]:
    """
    A student's own final submissions, newest first.
    """
    query = db.query(Submission).filter(
        Submission.user_id == student.id,
        Submission.is_final.is_(True),
    )
    if problem_id is not None:
        query = query.filter(Submission.problem_id == problem_id)
    return (
        query.order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def add_reflection(
    db: Session,
    *,
    submission: Submission,
    student: User,
    reflection: str,
) -> Submission:
    if submission.user_id != student.id:
        raise NotFoundError("submission not found")
    submission.reflection = reflection.strip()
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def list_final_submissions_for_classroom(db: Session, classroom_id: str) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(
            Submission.classroom_id == classroom_id,
            Submission.is_final.is_(True),
        )
        .all()
    )


def save_feedback(
    db: Session,
    *,
    submission: Submission,
    teacher: User,
    feedback_in: FeedbackUpdate,
) -> Submission:
    """
    Teacher review of a submission in one of their classrooms.
    Only the review fields change; `passed` stays as recorded.
    """
    if not submission.classroom_id:
        raise PermissionDeniedError("submission is not part of a classroom")
    classroom_service.get_owned_classroom(
        db, classroom_id=submission.classroom_id, teacher_id=teacher.id
    )

    submission.teacher_score = feedback_in.score
    submission.teacher_grade = feedback_in.grade or None
    submission.teacher_feedback = feedback_in.feedback or None
    submission.reviewed_by = teacher.id
    submission.reviewed_at = datetime.now(timezone.utc)

    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def list_gallery(
    db: Session,
    *,
    viewer: User,
    classroom_id: str,
    problem_id: int,
) -> List[tuple[Submission, str]]:
    """
    Peer solutions: final passing submissions of classmates. Only
    available when the assignment enables the gallery; the viewer must
    be enrolled or own the classroom.
    """
    classroom = classroom_service.get_classroom(db, classroom_id)
    if classroom is None:
        raise NotFoundError("classroom not found")
    if classroom.teacher_id != viewer.id:
        _check_enrollment(db, student=viewer, classroom_id=classroom_id)

    assignment = assignment_service.get_assignment(
        db, classroom_id=classroom_id, problem_id=problem_id
    )
    if assignment is None or not assignment.gallery_enabled:
        raise PermissionDeniedError("gallery is not enabled for this problem")

    return (
        db.query(Submission, User.name)
        .join(User, User.id == Submission.user_id)
        .filter(
            Submission.classroom_id == classroom_id,
            Submission.problem_id == problem_id,
            Submission.is_final.is_(True),
            Submission.passed.is_(True),
        )
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )


def analyze_gallery(
    db: Session,
    *,
    viewer: User,
    classroom_id: str,
    problem_id: int,
) -> Tuple[Optional[str], Optional[str]]:
    """
    AI comparison of the approaches in the gallery's solutions.

    Returns (analysis, message); analysis is None with an explanatory
    message when there are fewer than two solutions to compare.
    """
    rows = list_gallery(db, viewer=viewer, classroom_id=classroom_id, problem_id=problem_id)
    if len(rows) < 2:
        return None, "at least two passing solutions are needed for an analysis"

    problem = problem_service.get_problem(db, problem_id)
    title = problem.title if problem is not None else str(problem_id)
    analysis = ai_client.analyze_solutions([sub.code for sub, _ in rows], title)
    return analysis, None


def list_reflections_for_classroom(
    db: Session,
    *,
    classroom_id: str,
    teacher: User,
) -> List[Dict[str, Any]]:
    """
    Every non-empty student reflection in the classroom, newest first.
    """
    classroom_service.get_owned_classroom(db, classroom_id=classroom_id, teacher_id=teacher.id)

    rows = (
        db.query(Submission, User.name, Problem.title, Problem.difficulty, ClassroomMember.student_number)
        .join(User, User.id == Submission.user_id)
        .join(Problem, Problem.id == Submission.problem_id)
        .outerjoin(
            ClassroomMember,
            (ClassroomMember.classroom_id == Submission.classroom_id)
            & (ClassroomMember.user_id == Submission.user_id),
        )
        .filter(
            Submission.classroom_id == classroom_id,
            Submission.reflection.isnot(None),
            Submission.reflection != "",
        )
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .all()
    )
    return [
        {
            "id": sub.id,
            "reflection": sub.reflection,
            "submitted_at": sub.submitted_at,
            "passed": sub.passed,
            "student_id": sub.user_id,
            "student_name": name,
            "student_number": number,
            "problem_id": sub.problem_id,
            "problem_title": title,
            "difficulty": difficulty,
        }
        for sub, name, title, difficulty, number in rows
    ]
