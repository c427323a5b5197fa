# pythink/models/conversation.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from pythink.db.base_class import Base


class AIConversation(Base):
    __tablename__ = "ai_conversations"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    problem_id = Column(Integer, ForeignKey("problems.id"), nullable=False, index=True)
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=True, index=True)

    # [{"role": "user"|"assistant", "content": "...", "timestamp": "..."}]
    messages_json = Column(Text, nullable=False, default="[]")
    message_count = Column(Integer, nullable=False, default=0)

    summary = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class AIUsageLog(Base):
    """One row per AI coach exchange."""

    __tablename__ = "ai_usage_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
