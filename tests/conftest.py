import os
import sys
from pathlib import Path

# must be set before the app (and database.database) is imported
os.environ["DATABASE_URL"] = "sqlite://"

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth.security import create_access_token
from database import crud
from database.database import Base, get_db
from database.models import ExamStatus
from exam_api import app
from grading.schemas import GeneratedQuestions, QuestionTemplate, VariationSchema
from routers.deps import get_question_generator, get_text_grader


class FakeGrader:
    """Stands in for TextAnswerGrader. `verdicts` is a list or a callable(items)."""

    def __init__(self):
        self.verdicts = []
        self.error = None
        self.calls = []

    async def grade_batch(self, items):
        self.calls.append(list(items))
        if self.error is not None:
            raise self.error
        if callable(self.verdicts):
            return self.verdicts(items)
        return list(self.verdicts)


class FakeGenerator:
    def __init__(self):
        self.output = GeneratedQuestions()
        self.error = None
        self.calls = []

    async def generate(self, source_ref, count, config=None):
        self.calls.append((source_ref, count, config))
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(session_factory, grader, generator):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_text_grader] = lambda: grader
    app.dependency_overrides[get_question_generator] = lambda: generator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth(user_id, email=None):
    claims = {"sub": str(user_id)}
    if email:
        claims["email"] = email
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


def single(text, options, correct):
    return {"text": text, "options": options, "correct_answers": correct}


def seed_exam(db, questions, creator_id=1, access_type="public", time_limit=None, allowed_emails=None):
    """Store a ready exam. `questions` is a list of (type, [variation dicts], is_bonus)."""
    exam = crud.create_exam(db, title="Seeded exam", creator_id=creator_id, time_limit=time_limit)
    exam.access_type = access_type
    exam.allowed_emails = list(allowed_emails or [])
    db.commit()
    templates = [
        QuestionTemplate(
            type=qtype,
            variations=[VariationSchema(**v) for v in variations],
            is_bonus=is_bonus,
        )
        for qtype, variations, is_bonus in questions
    ]
    rows = crud.create_questions(db, exam.id, templates)
    crud.set_exam_status(db, exam, ExamStatus.READY.value)
    return exam.id, [q.id for q in rows]
