# pythink/models/classroom.py
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from pythink.db.base_class import Base


def _new_classroom_id() -> str:
    return str(uuid.uuid4())


class Classroom(Base):
    __tablename__ = "classrooms"
    __table_args__ = (
        UniqueConstraint("teacher_id", "name", name="uq_classroom_teacher_name"),
    )

    id = Column(String(36), primary_key=True, default=_new_classroom_id)
    name = Column(String(100), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    join_code = Column(String(5), unique=True, nullable=False, index=True)

    # 0 = unlimited AI coach messages per student per day
    daily_ai_limit = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ClassroomMember(Base):
    __tablename__ = "classroom_members"
    __table_args__ = (
        UniqueConstraint("classroom_id", "user_id", name="uq_member_classroom_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # roster number, editable by the student or the owning teacher
    student_number = Column(String(20), nullable=True)

    joined_at = Column(DateTime(timezone=True), server_default=func.now())


class ClassroomProblem(Base):
    """A problem assigned to a classroom."""

    __tablename__ = "classroom_problems"
    __table_args__ = (
        UniqueConstraint("classroom_id", "problem_id", name="uq_assignment_classroom_problem"),
    )

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=False, index=True)
    problem_id = Column(Integer, ForeignKey("problems.id"), nullable=False, index=True)

    # 0 = AI disabled ... 4 = code examples
    ai_level = Column(Integer, nullable=False, default=2)
    gallery_enabled = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
