"""
Shared pytest fixtures for the Programme Interchange Engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - demo_on: demo mode enabled via the feature flag
    - store: database-backed TaskStore
    - fixed_now: pin the pipelines' clock to a known UTC instant
"""

from datetime import datetime, timezone

import pytest

from interchange import create_app
from interchange.models import db as _db
from interchange.services import demo_mode_service
from interchange.services.task_store import TaskStore

FIXED_NOW = datetime(2025, 3, 14, 9, 30, 0, tzinfo=timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def store():
    return TaskStore()


@pytest.fixture()
def demo_on():
    """Enable demo mode through the feature flag."""
    demo_mode_service.set_demo_mode(True, actor="test")


@pytest.fixture()
def fixed_now(monkeypatch):
    """Pin every interchange clock to FIXED_NOW."""
    for target in (
        "interchange.services.programme_import._utcnow",
        "interchange.services.programme_export._utcnow",
        "interchange.services.programme_parser._utcnow",
        "interchange.services.activity_log_service._utcnow",
        "interchange.services.quota_service._utcnow",
    ):
        monkeypatch.setattr(target, lambda: FIXED_NOW)
    return FIXED_NOW


# ── Sample files ─────────────────────────────────────────────────────────


def _make_csv(rows: int, start_day: int = 1) -> bytes:
    """CSV programme with ``rows`` tasks starting on consecutive March days."""
    lines = ["Task ID,Name,Start Date,Finish Date,Duration,Progress,Is Milestone"]
    for i in range(rows):
        day = start_day + i
        lines.append(
            f"T{i + 1},Task {i + 1},2025-03-{day:02d},2025-03-{day + 1:02d},1,{i * 10 % 100},"
            f"{'Yes' if i == 0 else 'No'}"
        )
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture()
def make_csv():
    """Factory: ``make_csv(rows, start_day=1) -> bytes``."""
    return _make_csv
