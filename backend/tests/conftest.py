"""
Shared pytest fixtures.

Environment variables are set before anything from ``printshop`` is
imported, so the module-level settings/engine pick up the test values.
Each test gets its own in-memory SQLite database.
"""
import os
import sys
import tempfile

# Ensure printshop package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_dir = tempfile.mkdtemp(prefix="printshop-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmp_dir, 'app.db')}")
os.environ.setdefault("DATA_DIR", os.path.join(_tmp_dir, "data"))
os.environ["LOG_FILE"] = ""
os.environ["AUTH_ENABLED"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from printshop.core.config import settings  # noqa: E402
from printshop.core.database import get_session  # noqa: E402
from printshop.store import DataStore  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Profit settings file and reminder mode are per-test."""
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path)
    monkeypatch.setattr(settings, "REMINDER_MATCH", "exact")
    yield


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def store(session):
    return DataStore(session)


@pytest.fixture
def client(engine):
    from printshop.main import app

    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()
