# pythink/schemas/conversation.py
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: str | None = None


class ChatRequest(BaseModel):
    problem_id: int
    classroom_id: str | None = None
    message: str = Field(min_length=1)
    code: str | None = None
    conversation_id: int | None = None


class ChatResponse(BaseModel):
    conversation_id: int
    reply: str
    message_count: int


class ConversationPublic(BaseModel):
    id: int
    problem_id: int
    classroom_id: str | None = None
    messages: List[ChatMessage]
    message_count: int
    summary: str | None = None
    updated_at: datetime | None = None


class SummaryQueued(BaseModel):
    conversation_id: int
    job_id: str
