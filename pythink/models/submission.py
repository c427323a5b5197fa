# pythink/models/submission.py
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Numeric,
    ForeignKey,
)
from sqlalchemy.sql import func
from pythink.db.base_class import Base

class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    problem_id = Column(Integer, ForeignKey("problems.id"), nullable=False, index=True)
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=True, index=True)

    code = Column(Text, nullable=False)
    output = Column(Text, nullable=False, default="")
    test_results_json = Column(Text, nullable=False, default="[]")

    # written once; a re-submission is a new row
    passed = Column(Boolean, nullable=False, default=False)

    is_final = Column(Boolean, nullable=False, default=False, index=True)
    approach_tag = Column(String(50), nullable=True)
    reflection = Column(Text, nullable=True)

    # teacher review
    teacher_score = Column(Numeric(5, 1), nullable=True)
    teacher_grade = Column(String(10), nullable=True)
    teacher_feedback = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
