"""
Test configuration and fixtures for the toolbox service.
This centralizes all test setup, making individual tests clean.
"""

import os

# Must be set before the application settings are imported
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["ANALYTICS_SINK"] = "log"
os.environ["ANALYTICS_WORKER_EMBEDDED"] = "false"
os.environ["AUTH_JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from main import app
from toolbox_app.config import settings
from toolbox_app.database.connection import Base, SessionLocal, engine, get_db
from toolbox_app.dependencies import get_click_tracker, get_queue
from toolbox_app.models import Category, Project, ShortLink, Status
from toolbox_app.auth.roles import Role
from toolbox_app.queue.strategies import InMemoryQueue
from toolbox_app.services.click_tracker import ClickTracker


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database for each test.
    This ensures tests are isolated and don't affect each other.
    """
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def queue():
    return InMemoryQueue()


@pytest.fixture(scope="function")
def tracker(queue):
    """Click tracker writing through its own sessions, like in production"""
    return ClickTracker(session_factory=SessionLocal, queue=queue)


@pytest.fixture(scope="function")
def client(db_session, tracker, queue):
    """
    Create a test client with database, queue and tracker overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_click_tracker] = lambda: tracker
    app.dependency_overrides[get_queue] = lambda: queue

    with TestClient(app) as test_client:
        yield test_client
        # Let detached click recordings finish before the tables are dropped
        test_client.portal.call(tracker.drain)

    app.dependency_overrides.clear()


def make_token(role: str = None, sub: str = "user-1", secret: str = "test-secret") -> str:
    """Supabase-style access token with the role under app_metadata"""
    payload = {"sub": sub, "role": "authenticated"}
    if role is not None:
        payload["app_metadata"] = {"role": role}
    return jwt.encode(payload, secret, algorithm=settings.auth_jwt_algorithm)


def auth_headers(role: str, sub: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {make_token(role, sub)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin", sub="admin-1")


@pytest.fixture
def subscriber_headers():
    return auth_headers("subscriber", sub="subscriber-1")


@pytest.fixture
def make_project(db_session):
    def _make(slug="ai-content-generator", is_gated=False, required_role=Role.SUBSCRIBER,
              status=Status.PUBLISHED, category=Category.MARKETING):
        project = Project(
            slug=slug,
            title=slug.replace("-", " ").title(),
            description="Showcase project",
            category=category,
            is_gated=is_gated,
            required_role=required_role,
            status=status,
        )
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project
    return _make


@pytest.fixture
def make_link(db_session):
    def _make(slug="chatgpt", destination_url="https://chat.openai.com?ref=tonystoolbox", project=None):
        link = ShortLink(
            slug=slug,
            destination_url=destination_url,
            owner_project_id=project.id if project is not None else None,
            click_count=0,
        )
        db_session.add(link)
        db_session.commit()
        db_session.refresh(link)
        return link
    return _make
