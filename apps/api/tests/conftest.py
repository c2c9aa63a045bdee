"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database by default (TEST_DATABASE_URL
overrides it). The schema is created fresh for every test and dropped
afterwards, so nothing leaks between tests.

API tests share the single in-memory connection with the app; fixtures
therefore commit their data before the client is called.
"""
import pytest
import sys
import os
from uuid import uuid4

# Must be set before core.config is imported anywhere.
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine
from core.security import create_access_token
import models  # noqa: F401
from services import bootstrap
from services import users as user_service


TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db_session():
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


@pytest.fixture
def system_permissions(db_session):
    permissions = bootstrap.seed_permissions(db_session)
    db_session.commit()
    return permissions


@pytest.fixture
def system_roles(db_session, system_permissions):
    """superadmin (bypass), admin (users + coaching), user (default, nothing granted)."""
    roles = bootstrap.seed_roles(db_session, system_permissions)
    db_session.commit()
    return roles


@pytest.fixture
def make_user(db_session):
    def _make(role=None, **overrides):
        fields = {
            "first_name": "Test",
            "last_name": "User",
            "email": f"user_{uuid4().hex[:12]}@example.com",
            "password": TEST_PASSWORD,
        }
        fields.update(overrides)
        if role is None:
            user = user_service.register_user(db_session, **fields)
        else:
            user = user_service.create_user(db_session, role_id=role.id, **fields)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def superadmin(system_roles, make_user):
    return make_user(system_roles["superadmin"], first_name="Super")


@pytest.fixture
def admin(system_roles, make_user):
    return make_user(system_roles["admin"], first_name="Admin")


@pytest.fixture
def regular_user(system_roles, make_user):
    return make_user(system_roles["user"], first_name="Regular")


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}
