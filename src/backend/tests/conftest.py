"""
Pytest configuration and shared fixtures

In-memory SQLite database, a seeded two-question quiz and a TestClient
wired to the same session.
"""
import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.database import get_db
from app.core.quiz_session import QuizSessionRegistry
from app.models import Base, Episode, Quiz, QuizAnswerOption, QuizQuestion


QUIZ_ID = "quiz-1"
EPISODE_ID = "episode-1"
USER_ID = "user-1"


@pytest.fixture(autouse=True)
def clean_policy_env(monkeypatch):
    """Tests run against the built-in defaults"""
    for name in (
        "QUIZ_MAX_ATTEMPTS",
        "QUIZ_COOLDOWN_HOURS",
        "QUIZ_RESET_DAYS",
        "QUIZ_DEFAULT_PASS_PERCENTAGE",
        "CPD_MIN_HOURS_PER_QUIZ",
        "CPD_DEFAULT_HOURS_PER_QUIZ",
        "QUIZ_SESSION_IDLE_MINUTES",
        "ADMIN_ALLOWED_IPS",
        "ADMIN_TRUSTED_PROXIES",
    ):
        monkeypatch.delenv(name, raising=False)


# ==================== Database ====================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


# ==================== Test data ====================

def seed_quiz(db, quiz_id: str = QUIZ_ID, content_id: str = EPISODE_ID, **overrides) -> Quiz:
    """
    Two questions:
        q1 single correct answer (q1-a)
        q2 two correct answers (q2-a, q2-b), answers stored out of letter order
    """
    if content_id and not db.query(Episode).filter(Episode.id == content_id).first():
        db.add(Episode(id=content_id, title="Canine dermatology", duration=3600))

    quiz = Quiz(
        id=quiz_id,
        title="Dermatology basics",
        description="Episode quiz",
        content_id=content_id,
        **overrides
    )
    q1 = QuizQuestion(
        id=f"{quiz_id}-q1",
        question_text="Most common cause of pruritus in dogs?",
        rationale="Flea allergy dermatitis is the most common.",
        learning_outcome="Recognise common pruritic disease",
        sort_order=0
    )
    q1.answers = [
        QuizAnswerOption(id=f"{quiz_id}-q1-b", answer_letter="B", answer_text="Ringworm", is_correct=False),
        QuizAnswerOption(id=f"{quiz_id}-q1-a", answer_letter="A", answer_text="Flea allergy", is_correct=True),
    ]
    q2 = QuizQuestion(
        id=f"{quiz_id}-q2",
        question_text="Which are zoonotic?",
        rationale="Both Microsporum canis and Sarcoptes can infect people.",
        sort_order=1
    )
    q2.answers = [
        QuizAnswerOption(id=f"{quiz_id}-q2-c", answer_letter="C", answer_text="Atopy", is_correct=False),
        QuizAnswerOption(id=f"{quiz_id}-q2-a", answer_letter="A", answer_text="Microsporum canis", is_correct=True),
        QuizAnswerOption(id=f"{quiz_id}-q2-b", answer_letter="B", answer_text="Sarcoptes scabiei", is_correct=True),
    ]
    quiz.questions = [q1, q2]
    db.add(quiz)
    db.commit()
    return quiz


@pytest.fixture
def quiz(db):
    return seed_quiz(db)


def answers_for(quiz_id: str = QUIZ_ID, q1_correct: bool = True, q2_correct: bool = True) -> list:
    """Submission answers for the seeded quiz"""
    return [
        {
            "question_id": f"{quiz_id}-q1",
            "selected_answers": [f"{quiz_id}-q1-a" if q1_correct else f"{quiz_id}-q1-b"],
            "is_correct": q1_correct,
            "points": 50 if q1_correct else 0,
        },
        {
            "question_id": f"{quiz_id}-q2",
            "selected_answers": [f"{quiz_id}-q2-a", f"{quiz_id}-q2-b"] if q2_correct else [f"{quiz_id}-q2-c"],
            "is_correct": q2_correct,
            "points": 50 if q2_correct else 0,
        },
    ]


# ==================== HTTP ====================

@pytest.fixture
def app(db):
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.quiz_sessions = QuizSessionRegistry()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def admin_access(monkeypatch):
    """Allowlist the TestClient peer address for /api/admin/*"""
    monkeypatch.setenv("ADMIN_ALLOWED_IPS", "testclient")
