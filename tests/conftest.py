"""Shared fixtures for all tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from support_chat.config import Settings
from support_chat.database import Base, get_db
import support_chat.models  # noqa: F401  register all models with Base
from support_chat.services.llm import GatewayError

# Use in-memory SQLite for tests; StaticPool ensures all connections share the same DB
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=TEST_ENGINE, autoflush=False, expire_on_commit=False)


class FakeGateway:
    """Stands in for LLMGateway: records calls, returns canned replies or raises."""

    def __init__(self, replies=None, error: GatewayError | None = None, configured: bool = True):
        self.replies = list(replies or ["Happy to help!"])
        self.error = error
        self.configured = configured
        self.calls: list[tuple[list, str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def generate_reply(self, history, user_message):
        self.calls.append((list(history), user_message))
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


@pytest.fixture(autouse=True)
def _setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db():
    """Yield a test database session."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(_env_file=None, DATABASE_URL="sqlite://", LLM_API_KEY="")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(db, settings, gateway):
    """Create a test FastAPI app with DB overridden to use test session."""
    from support_chat.main import create_app

    _app = create_app(settings, engine=TEST_ENGINE, gateway=gateway)

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    _app.dependency_overrides[get_db] = _override_get_db
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)
