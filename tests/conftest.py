"""Pytest fixtures."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gymbro.core.config import settings
from gymbro.db.base import Base
from gymbro.db.session import get_db
from gymbro.main import app
from gymbro.models import MetricSnapshot  # noqa: F401 - registers every table for create_all
from gymbro.services.seed_catalogue import SEED_CATALOGUE
from gymbro.services.template_service import seed_templates

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

AVATAR_CATALOGUE = [
    {
        "slug": "avatar-path",
        "title": "Your Path",
        "order_index": 10,
        "source": "avatar",
        "stages": [
            {
                "code": "AVATAR_START",
                "order_index": 100,
                "title": "First Steps",
                "category": "workout",
                "requirements": {"rules": [{"metric": "workouts_per_week", "gte": 2}]},
                "tasks": [
                    {
                        "code": "FIRST_WORKOUT",
                        "title": "Log a workout",
                        "points": 25,
                        "condition": {"metric": "workouts_per_week", "gte": 1},
                    },
                ],
            },
            {
                "code": "AVATAR_NEXT",
                "order_index": 101,
                "title": "Keep Going",
                "category": "workout",
                "requirements": {"rules": [{"metric": "workouts_per_week", "gte": 4}]},
                "tasks": [
                    {
                        "code": "FOUR_WORKOUTS",
                        "title": "Train four times",
                        "points": 50,
                        "condition": {"metric": "workouts_per_week", "gte": 4},
                    },
                ],
            },
        ],
    },
]


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session")
def setup_db():
    """Create tables and load stage templates once for test session."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        seed_templates(db, SEED_CATALOGUE)
        seed_templates(db, AVATAR_CATALOGUE)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    """A session on the test database."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(setup_db):
    """Test client with overridden DB and a fresh throttle and cache."""
    app.dependency_overrides[get_db] = override_get_db
    app.state.completion_limiter.reset()
    app.state.journey_cache.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> str:
    """A user id nobody else in the session uses."""
    return f"user-{uuid.uuid4().hex[:12]}"


def make_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": user_id, "iat": now, "exp": now + timedelta(minutes=30)},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def auth_headers(user_id):
    """Bearer headers for ``user_id``."""
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def record_metrics(setup_db):
    """Write metric snapshots the way the external metrics pipeline would."""

    def _record(user_id: str, window_days: int = 7, **values: float) -> None:
        session = TestingSessionLocal()
        try:
            for metric, value in values.items():
                session.add(MetricSnapshot(user_id=user_id, metric=metric, window_days=window_days, value=value))
            session.commit()
        finally:
            session.close()

    return _record


class StaticMetrics:
    """In-memory metrics provider for service-level tests."""

    def __init__(self, values: dict[str, float] | None = None, error: Exception | None = None) -> None:
        self.values = dict(values or {})
        self.error = error
        self.calls: list[tuple[str, int]] = []

    def get_metrics(self, user_id: str, lookback_days: int) -> dict[str, float]:
        self.calls.append((user_id, lookback_days))
        if self.error is not None:
            raise self.error
        return dict(self.values)


@pytest.fixture
def metrics():
    """A mutable metrics provider, empty by default."""
    return StaticMetrics()


@pytest.fixture
def token_for():
    """Build bearer headers for any user id."""

    def _headers(other_user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(other_user_id)}"}

    return _headers
