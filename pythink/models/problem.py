# pythink/models/problem.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from pythink.db.base_class import Base

class Problem(Base):
    __tablename__ = "problems"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    difficulty = Column(Integer, nullable=False, default=1)  # 1-5
    category = Column(String(20), nullable=False, index=True)

    # [{"input": "...", "expected_output": "..."}]
    test_cases_json = Column(Text, nullable=False, default="[]")
    starter_code = Column(Text, nullable=False, default="")
    # ["hint", ...], shown one at a time
    hints_json = Column(Text, nullable=False, default="[]")
    # [{"tag": "...", "description": "..."}]
    expected_approaches_json = Column(Text, nullable=False, default="[]")
    explanation = Column(Text, nullable=True)

    # draft / review / approved / revision / rejected
    status = Column(String(20), nullable=False, default="draft", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
