"""
Shared fixtures: in-memory SQLite database, user / classroom / problem
factories and an authenticated API client.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pythink.core.security import create_access_token
from pythink.db.base import Base
from pythink.db.session import get_db
from pythink.main import app
from pythink.models.classroom import Classroom, ClassroomMember, ClassroomProblem
from pythink.models.conversation import AIConversation
from pythink.models.problem import Problem
from pythink.models.submission import Submission
from pythink.models.user import User

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def _make_user(db, *, email, name, role):
    user = User(
        email=email,
        # Pre-hashed password to avoid running bcrypt in tests
        password_hash="$2b$12$hashed_password_001",
        name=name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_user(db_session):
    def factory(email, name, role="student"):
        return _make_user(db_session, email=email, name=name, role=role)

    return factory


@pytest.fixture
def test_teacher(make_user):
    return make_user("teacher@test.com", "Test Teacher", role="teacher")


@pytest.fixture
def other_teacher(make_user):
    return make_user("other@test.com", "Other Teacher", role="teacher")


@pytest.fixture
def make_problem(db_session, test_teacher):
    def factory(title, difficulty=1, category="loop", status="approved"):
        problem = Problem(
            author_id=test_teacher.id,
            title=title,
            description=f"{title} description",
            difficulty=difficulty,
            category=category,
            test_cases_json=json.dumps([{"input": "", "expected_output": "1"}]),
            status=status,
        )
        db_session.add(problem)
        db_session.commit()
        db_session.refresh(problem)
        return problem

    return factory


@pytest.fixture
def test_classroom(db_session, test_teacher):
    classroom = Classroom(name="1-1", teacher_id=test_teacher.id, join_code="12345")
    db_session.add(classroom)
    db_session.commit()
    db_session.refresh(classroom)
    return classroom


@pytest.fixture
def enroll(db_session, make_user):
    """Create a student and add them to a classroom."""

    def factory(classroom, name, number=None, email=None):
        student = make_user(email or f"{name.lower().replace(' ', '.')}@test.com", name)
        db_session.add(
            ClassroomMember(
                classroom_id=classroom.id,
                user_id=student.id,
                student_number=number,
            )
        )
        db_session.commit()
        return student

    return factory


@pytest.fixture
def assign(db_session):
    def factory(classroom, problem, ai_level=2, gallery_enabled=False, sort_order=0, is_active=True):
        assignment = ClassroomProblem(
            classroom_id=classroom.id,
            problem_id=problem.id,
            ai_level=ai_level,
            gallery_enabled=gallery_enabled,
            is_active=is_active,
            sort_order=sort_order,
        )
        db_session.add(assignment)
        db_session.commit()
        return assignment

    return factory


@pytest.fixture
def add_submission(db_session):
    def factory(student, problem, classroom, passed, is_final=True, code="print(1)", **fields):
        sub = Submission(
            user_id=student.id,
            problem_id=problem.id,
            classroom_id=classroom.id,
            code=code,
            passed=passed,
            is_final=is_final,
            **fields,
        )
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub

    return factory


@pytest.fixture
def add_conversation(db_session):
    def factory(student, problem, classroom, user_messages):
        messages = []
        for text in user_messages:
            messages.append({"role": "user", "content": text})
            messages.append({"role": "assistant", "content": "hint"})
        conv = AIConversation(
            user_id=student.id,
            problem_id=problem.id,
            classroom_id=classroom.id,
            messages_json=json.dumps(messages, ensure_ascii=False),
            message_count=len(messages),
        )
        db_session.add(conv)
        db_session.commit()
        db_session.refresh(conv)
        return conv

    return factory


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def factory(user):
        token = create_access_token(data={"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

    return factory
