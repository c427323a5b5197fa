# pythink/api/v1/endpoints/conversations.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pythink.core.security import get_current_student, get_current_teacher
from pythink.db.session import get_db
from pythink.models.user import User
from pythink.schemas.conversation import (
    ChatRequest,
    ChatResponse,
    ConversationPublic,
    SummaryQueued,
)
from pythink.services import conversation_service
from pythink.workers.queue import enqueue_summary_task

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    conversation, reply = conversation_service.chat(db, student=current_student, obj_in=payload)
    return ChatResponse(
        conversation_id=conversation.id,
        reply=reply,
        message_count=conversation.message_count,
    )


@router.get("/conversations", response_model=List[ConversationPublic])
def list_my_conversations(
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
    problem_id: int | None = None,
    classroom_id: str | None = None,
):
    conversations = conversation_service.list_conversations_for_student(
        db, student=current_student, problem_id=problem_id, classroom_id=classroom_id
    )
    return [
        ConversationPublic(
            id=c.id,
            problem_id=c.problem_id,
            classroom_id=c.classroom_id,
            messages=conversation_service.decode_messages(c),
            message_count=c.message_count,
            summary=c.summary,
            updated_at=c.updated_at,
        )
        for c in conversations
    ]


@router.post(
    "/summarize/{conversation_id}",
    response_model=SummaryQueued,
    status_code=status.HTTP_202_ACCEPTED,
)
def request_summary(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    """
    Queue a summary; the worker stores it on the conversation.
    """
    conversation = conversation_service.get_conversation_for_teacher(
        db, conversation_id=conversation_id, teacher=current_teacher
    )
    job_id = enqueue_summary_task(conversation.id)
    return SummaryQueued(conversation_id=conversation.id, job_id=job_id)
