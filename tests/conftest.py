"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. The
environment is set before the app is imported so Settings picks it up.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_insights.db")
os.environ.setdefault("STORE_API_TOKEN", "test-store-token")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.main import app
from app.services.aggregator import BehaviorEvent, Student
from app.services.store_client import HttpArtifactStore

SQLITE_URL = "sqlite:///./test_insights.db"
STORE_TOKEN = os.environ["STORE_API_TOKEN"]

# Fixed reference instant for every window calculation in the suite.
NOW = datetime(2026, 3, 16, 12, 0, tzinfo=timezone.utc)

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def event(
    category: str,
    entity_id: str | None = None,
    days_ago: float | None = 1,
    subject: str | None = None,
    time_of_day: str | None = None,
    severity: str | None = None,
    event_id: str | None = None,
) -> BehaviorEvent:
    """Build a BehaviorEvent dated `days_ago` before NOW (None = undated)."""
    return BehaviorEvent(
        category=category,
        entity_id=entity_id,
        subject=subject,
        time_of_day=time_of_day,
        severity=severity,
        occurred_at=None if days_ago is None else NOW - timedelta(days=days_ago),
        id=event_id,
    )


def mock_store(handler) -> HttpArtifactStore:
    """HttpArtifactStore whose transport is `handler(request) -> httpx.Response`."""
    return HttpArtifactStore(
        client=httpx.Client(transport=httpx.MockTransport(handler), base_url="http://store")
    )


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {STORE_TOKEN}"}


@pytest.fixture()
def students():
    return [
        Student(id="s1", name="Ana"),
        Student(id="s2", name="Ben"),
        Student(id="s3", name="Cleo"),
    ]
