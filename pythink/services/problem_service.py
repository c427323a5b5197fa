# pythink/services/problem_service.py
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from pythink.core.errors import AIUnavailableError, ConflictError, NotFoundError
from pythink.models.problem import Problem
from pythink.models.submission import Submission
from pythink.models.user import User
from pythink.schemas.problem import ProblemCreate, ProblemGenerateRequest, ProblemUpdate
from pythink.services import ai_client

logger = logging.getLogger(__name__)


def create_problem(
    db: Session,
    *,
    author: User,
    obj_in: ProblemCreate,
) -> Problem:
    """
    teacher creates a problem
    """
    db_obj = Problem(
        author_id=author.id,
        title=obj_in.title,
        description=obj_in.description,
        difficulty=obj_in.difficulty,
        category=obj_in.category,
        test_cases_json=json.dumps(
            [tc.model_dump() for tc in obj_in.test_cases], ensure_ascii=False
        ),
        starter_code=obj_in.starter_code,
        hints_json=json.dumps(obj_in.hints, ensure_ascii=False),
        expected_approaches_json=json.dumps(
            [a.model_dump() for a in obj_in.expected_approaches], ensure_ascii=False
        ),
        explanation=obj_in.explanation,
        status=obj_in.status,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_problem(db: Session, problem_id: int) -> Optional[Problem]:
    return db.get(Problem, problem_id)


def list_problems_for_author(
    db: Session,
    *,
    author: User,
    skip: int = 0,
    limit: int = 100,
) -> List[Problem]:
    return (
        db.query(Problem)
        .filter(Problem.author_id == author.id)
        .order_by(Problem.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_approved_problems(
    db: Session,
    *,
    difficulty: int | None = None,
    category: str | None = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Problem]:
    query = db.query(Problem).filter(Problem.status == "approved")
    if difficulty is not None:
        query = query.filter(Problem.difficulty == difficulty)
    if category:
        query = query.filter(Problem.category == category)
    return (
        query.order_by(Problem.difficulty.asc(), Problem.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def update_problem(
    db: Session,
    *,
    db_obj: Problem,
    obj_in: ProblemUpdate,
) -> Problem:
    """
    teacher edits a problem; the only way a referenced problem changes
    """
    update_data = obj_in.model_dump(exclude_unset=True)
    test_cases = update_data.pop("test_cases", None)
    if test_cases is not None:
        db_obj.test_cases_json = json.dumps(test_cases, ensure_ascii=False)
    hints = update_data.pop("hints", None)
    if hints is not None:
        db_obj.hints_json = json.dumps(hints, ensure_ascii=False)
    approaches = update_data.pop("expected_approaches", None)
    if approaches is not None:
        db_obj.expected_approaches_json = json.dumps(approaches, ensure_ascii=False)
    for field, value in update_data.items():
        if value is not None:
            setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def delete_problem(db: Session, *, db_obj: Problem) -> None:
    referenced = (
        db.query(Submission.id).filter(Submission.problem_id == db_obj.id).first()
    )
    if referenced is not None:
        raise ConflictError("problem already has submissions")
    db.delete(db_obj)
    db.commit()


def _load_json_list(raw: str | None) -> List[Any]:
    try:
        value = json.loads(raw or "[]")
    except ValueError:
        return []
    return value if isinstance(value, list) else []


def problem_to_dict(problem: Problem) -> Dict[str, Any]:
    return {
        "id": problem.id,
        "author_id": problem.author_id,
        "title": problem.title,
        "description": problem.description,
        "difficulty": problem.difficulty,
        "category": problem.category,
        "test_cases": _load_json_list(problem.test_cases_json),
        "starter_code": problem.starter_code or "",
        "hints": _load_json_list(problem.hints_json),
        "expected_approaches": _load_json_list(problem.expected_approaches_json),
        "explanation": problem.explanation,
        "status": problem.status,
        "created_at": problem.created_at,
        "updated_at": problem.updated_at,
    }


def _content_fields(problem: Problem) -> Dict[str, Any]:
    data = problem_to_dict(problem)
    for key in ("id", "author_id", "status", "created_at", "updated_at"):
        data.pop(key)
    return data


def generate_problems(
    db: Session,
    *,
    author: User,
    obj_in: ProblemGenerateRequest,
) -> List[Problem]:
    """
    Ask the LLM for problem drafts and save the valid ones as drafts
    owned by the teacher. Malformed drafts are skipped.
    """
    reference = None
    if obj_in.reference_problem_id is not None:
        ref = get_problem(db, obj_in.reference_problem_id)
        if ref is None:
            raise NotFoundError("reference problem not found")
        reference = _content_fields(ref)

    drafts = ai_client.generate_problems(
        prompt=obj_in.prompt,
        count=obj_in.count,
        difficulty=obj_in.difficulty,
        category=obj_in.category,
        reference_problem=reference,
        include_explanation=obj_in.include_explanation,
    )

    saved: List[Problem] = []
    for draft in drafts:
        try:
            create_in = ProblemCreate.model_validate({**draft, "status": "draft"})
        except ValidationError as e:
            logger.warning(f"Skipping malformed generated problem: {e.error_count()} errors")
            continue
        saved.append(create_problem(db, author=author, obj_in=create_in))

    logger.info(f"Generated {len(saved)}/{len(drafts)} problems for teacher {author.id}")
    return saved


def revise_problem(
    db: Session,
    *,
    db_obj: Problem,
    feedback: str,
) -> Problem:
    """
    Rewrite a problem from teacher feedback; the result goes back to draft.
    """
    revised = ai_client.revise_problem(_content_fields(db_obj), feedback)
    try:
        validated = ProblemCreate.model_validate({**revised, "status": "draft"})
    except ValidationError as e:
        logger.warning(f"Revised problem {db_obj.id} failed validation: {e.error_count()} errors")
        raise AIUnavailableError("AI returned an invalid problem") from e

    return update_problem(db, db_obj=db_obj, obj_in=ProblemUpdate(**validated.model_dump()))
