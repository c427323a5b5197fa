# pythink/services/conversation_service.py
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pythink.core.config import settings
from pythink.core.errors import (
    AIDisabledError,
    AILimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from pythink.models.conversation import AIConversation, AIUsageLog
from pythink.models.problem import Problem
from pythink.models.user import User
from pythink.schemas.conversation import ChatRequest
from pythink.services import ai_client, assignment_service, classroom_service

logger = logging.getLogger(__name__)


def decode_messages(conversation: AIConversation) -> List[Dict[str, Any]]:
    try:
        messages = json.loads(conversation.messages_json or "[]")
    except ValueError:
        logger.warning(f"Conversation {conversation.id} has an unreadable message log")
        return []
    if not isinstance(messages, list):
        return []
    return [m for m in messages if isinstance(m, dict)]


def _start_of_day(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def count_usage_today(
    db: Session,
    *,
    user_id: int,
    classroom_id: str,
    now: datetime | None = None,
) -> int:
    now = now or datetime.now(timezone.utc)
    return (
        db.query(func.count(AIUsageLog.id))
        .filter(
            AIUsageLog.user_id == user_id,
            AIUsageLog.classroom_id == classroom_id,
            AIUsageLog.created_at >= _start_of_day(now),
        )
        .scalar()
        or 0
    )


def _check_daily_limit(db: Session, *, student: User, classroom_id: str | None) -> None:
    if not classroom_id:
        return
    classroom = classroom_service.get_classroom(db, classroom_id)
    if classroom is None or not classroom.daily_ai_limit:
        return
    used = count_usage_today(db, user_id=student.id, classroom_id=classroom_id)
    if used >= classroom.daily_ai_limit:
        raise AILimitExceededError(
            f"daily AI limit of {classroom.daily_ai_limit} messages reached"
        )


def _load_conversation(
    db: Session,
    *,
    conversation_id: int | None,
    student: User,
    problem_id: int,
    classroom_id: str | None,
) -> Optional[AIConversation]:
    if conversation_id is None:
        return None
    conversation = db.get(AIConversation, conversation_id)
    if (
        conversation is None
        or conversation.user_id != student.id
        or conversation.problem_id != problem_id
    ):
        raise NotFoundError("conversation not found")
    if (conversation.classroom_id or None) != (classroom_id or None):
        raise NotFoundError("conversation not found")
    return conversation


def chat(
    db: Session,
    *,
    student: User,
    obj_in: ChatRequest,
) -> Tuple[AIConversation, str]:
    """
    Append one student message and the coach's reply.

    Refused when the assignment's AI level is 0 or when the student
    used up the classroom's daily message allowance.
    """
    problem = db.get(Problem, obj_in.problem_id)
    if problem is None:
        raise NotFoundError("problem not found")

    classroom_id = obj_in.classroom_id or None
    if classroom_id:
        member = classroom_service.get_membership(db, classroom_id=classroom_id, user_id=student.id)
        if member is None:
            raise PermissionDeniedError("not enrolled in this classroom")

    ai_level = assignment_service.ai_level_for(
        db,
        classroom_id=classroom_id,
        problem_id=problem.id,
        default=settings.DEFAULT_AI_LEVEL,
    )
    if ai_level == 0:
        raise AIDisabledError("AI coach is disabled for this problem")

    _check_daily_limit(db, student=student, classroom_id=classroom_id)

    conversation = _load_conversation(
        db,
        conversation_id=obj_in.conversation_id,
        student=student,
        problem_id=problem.id,
        classroom_id=classroom_id,
    )
    messages = decode_messages(conversation) if conversation is not None else []
    messages.append(
        {
            "role": "user",
            "content": obj_in.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )

    reply = ai_client.coach_reply(
        problem_title=problem.title,
        problem_description=problem.description,
        ai_level=ai_level,
        messages=messages,
        student_code=obj_in.code,
    )
    messages.append(
        {
            "role": "assistant",
            "content": reply,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )

    if conversation is None:
        conversation = AIConversation(
            user_id=student.id,
            problem_id=problem.id,
            classroom_id=classroom_id,
        )
    conversation.messages_json = json.dumps(messages, ensure_ascii=False)
    conversation.message_count = len(messages)

    db.add(conversation)
    db.add(AIUsageLog(user_id=student.id, classroom_id=classroom_id))
    db.commit()
    db.refresh(conversation)

    return conversation, reply


def list_conversations_for_student(
    db: Session,
    *,
    student: User,
    problem_id: int | None = None,
    classroom_id: str | None = None,
) -> List[AIConversation]:
    query = db.query(AIConversation).filter(AIConversation.user_id == student.id)
    if problem_id is not None:
        query = query.filter(AIConversation.problem_id == problem_id)
    if classroom_id:
        query = query.filter(AIConversation.classroom_id == classroom_id)
    return query.order_by(AIConversation.updated_at.desc(), AIConversation.id.desc()).all()


def list_conversations_for_classroom(db: Session, classroom_id: str) -> List[AIConversation]:
    return (
        db.query(AIConversation)
        .filter(AIConversation.classroom_id == classroom_id)
        .all()
    )


def get_conversation_for_teacher(
    db: Session,
    *,
    conversation_id: int,
    teacher: User,
) -> AIConversation:
    conversation = db.get(AIConversation, conversation_id)
    if conversation is None:
        raise NotFoundError("conversation not found")
    if not conversation.classroom_id:
        raise PermissionDeniedError("conversation is not part of a classroom")
    classroom_service.get_owned_classroom(
        db, classroom_id=conversation.classroom_id, teacher_id=teacher.id
    )
    return conversation


def summarize_and_store(db: Session, conversation_id: int) -> Optional[str]:
    """
    Worker entry: generate the teacher summary and persist it.
    Returns the stored summary (None when the conversation is empty).
    """
    conversation = db.get(AIConversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"conversation {conversation_id} not found")

    problem = db.get(Problem, conversation.problem_id)
    title = problem.title if problem is not None else "unknown"

    summary = ai_client.summarize_conversation(decode_messages(conversation), title)
    if summary:
        conversation.summary = summary
        db.add(conversation)
        db.commit()
        logger.info(f"Stored summary for conversation {conversation_id}")
    return summary
