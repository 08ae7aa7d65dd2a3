"""Shared fixtures: a throwaway SQLite database and an app client.

The database URL has to be set before ``unilink`` is imported because the
engine is created at import time.
"""
import os
import tempfile
from datetime import timedelta
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="unilink-tests-")
_DB_PATH = Path(_DB_DIR) / "test.db"
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_FORMAT"] = "text"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session as OrmSession  # noqa: E402

from unilink import models  # noqa: E402
from unilink.api import app  # noqa: E402
from unilink.timeutil import utcnow  # noqa: E402

_sync_engine = create_engine(f"sqlite:///{_DB_PATH}")


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def clean_db():
    models.Base.metadata.drop_all(_sync_engine)
    models.Base.metadata.create_all(_sync_engine)
    yield


@pytest.fixture
def db():
    """Synchronous ORM session on the test database for arranging data."""
    with OrmSession(_sync_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def university(db):
    uni = models.University(
        name="Test University",
        domain="test.edu",
        country="India",
        tenant_id="test-edu",
        is_active=True,
    )
    db.add(uni)
    db.commit()
    return uni


@pytest.fixture
def make_user(db):
    """Create a user with a live bearer token and optionally a profile.

    Returns the auth headers for that user.
    """

    def _make(user_id: str, *, name: str | None = None, role: str | None = None, **profile_fields):
        db.add(models.User(id=user_id, name=name or user_id.title(), email=f"{user_id}@example.com"))
        db.add(models.Session(token=f"token-{user_id}", user_id=user_id, expires_at=utcnow() + timedelta(days=1)))
        if role is not None:
            db.add(models.Profile(user_id=user_id, role=role, **profile_fields))
        db.commit()
        return {"Authorization": f"Bearer token-{user_id}"}

    return _make
