"""
Pytest configuration and fixtures

The suite runs against a throwaway SQLite database upgraded to Alembic head
once per session. Every table is emptied after each test, so tests can commit
freely (the booking and rotation code paths commit on their own).
"""
import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time; configure the environment first.
_DB_DIR = tempfile.mkdtemp(prefix="growfit-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters!!")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from datetime import timedelta

from fastapi.testclient import TestClient


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """
    Build the test database from the Alembic migrations, not create_all, so a
    migration that drifts from models.py fails here first.
    """
    from alembic import command
    from alembic.config import Config

    api_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.attributes["configure_logger"] = False
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from core import clock
from core.database import Base, SessionLocal, engine
from api_helpers import create_client_profile, create_coach_profile, create_user


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def frozen_clock(monkeypatch):
    """
    Pin clock.utcnow() to the current instant.

    Returns an `advance(**timedelta_kwargs)` callable that moves time forward;
    `advance.now()` reads the pinned instant.
    """
    state = {"now": clock.utcnow()}
    monkeypatch.setattr(clock, "utcnow", lambda: state["now"])

    def advance(**delta):
        state["now"] = state["now"] + timedelta(**delta)
        return state["now"]

    advance.now = lambda: state["now"]
    return advance


@pytest.fixture
def admin_user():
    return create_user("admin", name="Admin")


@pytest.fixture
def team_user():
    return create_user("team", name="Team Member")


@pytest.fixture
def coach_user():
    return create_user("coach", name="Coach Carter")


@pytest.fixture
def client_user():
    return create_user("client", name="Casey Client")


@pytest.fixture
def coach(coach_user):
    return create_coach_profile(coach_user)


@pytest.fixture
def client_profile(client_user):
    return create_client_profile(client_user)
