# tests/conftest.py

import pytest
from starlette.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

from app.main import app
from app.core.limiter import limiter
from app.crud import crud_event
from app.db.session import get_db, get_session_factory
from app.models import Base
from app.schemas.event import EventCreate

from tests.utils.auth import create_moderator, get_moderator_authentication_headers


# --- Test Database Setup ---
# One in-memory SQLite database shared by every connection.
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Redis Mock ---
@pytest.fixture(autouse=True)
def published(monkeypatch):
    """
    Replaces the Redis client used for change-feed publishes. The mock
    records every ``publish(channel, payload)`` call.
    """
    redis_mock = MagicMock()
    monkeypatch.setattr("app.services.change_feed.redis_client", redis_mock)
    return redis_mock


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


# --- Domain Fixtures ---
@pytest.fixture
def moderator(db_session):
    return create_moderator(db_session)


@pytest.fixture
def moderator_headers(db_session, moderator):
    return get_moderator_authentication_headers(db_session, moderator)


@pytest.fixture
def event(db_session, moderator):
    return crud_event.event.create_with_moderator(
        db_session, obj_in=EventCreate(title="Town Hall"), moderator_id=moderator.id
    )


# --- Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session):
    """A TestClient whose requests all run against the test database."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
