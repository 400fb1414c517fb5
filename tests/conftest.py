"""Shared pytest fixtures for quizbank tests."""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from quizbank.core.security import create_access_token
from quizbank.db.models import (
    BankStatusEnum,
    FeedbackTimingEnum,
    Question,
    QuestionBank,
    QuestionTypeEnum,
    RoleEnum,
    User,
)
from quizbank.db.session import Base, get_db
from quizbank.main import app


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Create all tables once at startup
Base.metadata.create_all(bind=engine)


# One question of every type. Keys are canonical camelCase.
SAMPLE_QUESTIONS = [
    {
        "type": QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE,
        "prompt": "Capital of France?",
        "options": [{"id": "a", "text": "Paris"}, {"id": "b", "text": "Lyon"}],
        "correct_answer": {"optionId": "a"},
        "feedback": "Paris is the capital.",
    },
    {
        "type": QuestionTypeEnum.MULTIPLE_CHOICE_MULTI,
        "prompt": "Pick the primes.",
        "options": [
            {"id": "a", "text": "2"},
            {"id": "b", "text": "3"},
            {"id": "c", "text": "4"},
        ],
        "correct_answer": {"optionIds": ["a", "b"]},
        "feedback": "4 is composite.",
    },
    {
        "type": QuestionTypeEnum.TRUE_FALSE,
        "prompt": "Water boils at 100°C at sea level.",
        "options": [],
        "correct_answer": {"value": True},
        "feedback": "",
    },
    {
        "type": QuestionTypeEnum.DRAG_ORDER,
        "prompt": "Order smallest to largest.",
        "options": [{"id": "1"}, {"id": "2"}, {"id": "3"}],
        "correct_answer": {"orderedIds": ["1", "2", "3"]},
        "feedback": "",
    },
    {
        "type": QuestionTypeEnum.IMAGE_MAP,
        "prompt": "Click the left ventricle.",
        "options": {
            "image": "/img/heart.png",
            "regions": [
                {"type": "circle", "id": "lv", "cx": 100, "cy": 100, "r": 10},
                {"type": "rect", "id": "ra", "x": 0, "y": 0, "width": 20, "height": 20},
            ],
        },
        "correct_answer": {"regionId": "lv"},
        "feedback": "",
    },
    {
        "type": QuestionTypeEnum.SLIDER,
        "prompt": "Set the dial to 50.",
        "options": {"min": 0, "max": 100},
        "correct_answer": {"value": 50, "tolerance": 5},
        "feedback": "",
    },
]


@pytest.fixture(autouse=True)
def disable_rate_limiter():
    """Keep Redis out of every test; the bucket always has a token."""
    with patch(
        "quizbank.services.rate_limiter._bucket_script",
        return_value=MagicMock(return_value=0),
    ):
        yield


@pytest.fixture(scope="function")
def db():
    """Get a fresh DB session for each test."""
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()  # Rollback changes after each test
        session.close()


@pytest.fixture(scope="function")
def client(db: Session):
    """FastAPI test client with overridden DB dependency."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # Remove TrustedHostMiddleware for tests to allow 'testserver' host
    app.user_middleware = [m for m in app.user_middleware if "TrustedHost" not in str(m)]

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────────────────────────────────
# The service commits, so rows outlive a test: every factory call makes
# fresh, uniquely named rows.


@pytest.fixture
def make_user(db: Session):
    def _make(role: RoleEnum = RoleEnum.USER, is_active: bool = True) -> User:
        uid = str(uuid.uuid4())[:8]
        user = User(
            email=f"{role.value.lower()}_{uid}@ex.com",
            full_name=f"Test {role.value.title()}",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_bank(db: Session, make_user):
    def _make(
        questions: list[dict] | None = None,
        creator: User | None = None,
        **overrides,
    ) -> QuestionBank:
        creator = creator or make_user(RoleEnum.EDITOR)
        fields = {
            "title": f"Bank {uuid.uuid4().hex[:6]}",
            "status": BankStatusEnum.OPEN,
            "time_limit": 0,
            "random_questions": False,
            "random_answers": False,
            "passing_score": 80,
            "feedback_timing": FeedbackTimingEnum.END,
            "question_count": 0,
            "max_attempts": 0,
        }
        fields.update(overrides)
        bank = QuestionBank(created_by_id=creator.id, **fields)
        db.add(bank)
        db.flush()
        for i, attrs in enumerate(SAMPLE_QUESTIONS if questions is None else questions):
            db.add(Question(bank_id=bank.id, order=i, **attrs))
        db.commit()
        db.refresh(bank)
        return bank

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
