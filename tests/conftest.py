"""Shared pytest fixtures for ProjectHub tests."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure the project root is importable
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Override data/config directories so tests don't touch real data.
os.environ["PROJECTHUB_DATA_DIR"] = tempfile.mkdtemp(prefix="projecthub_test_data_")
os.environ["PROJECTHUB_CONFIG_DIR"] = tempfile.mkdtemp(prefix="projecthub_test_cfg_")

from backend.db.engine import Database  # noqa: E402
from backend.settings import Settings  # noqa: E402


class Stores:
    """All stores wired to one test database, the way create_app wires them."""

    def __init__(self, db: Database, settings: Settings) -> None:
        from webapp.auth.access import AccessEvaluator
        from webapp.auth.invitation_store import InvitationStore
        from webapp.auth.notification_store import NotificationStore
        from webapp.auth.session_store import SessionStore
        from webapp.auth.user_store import UserStore
        from webapp.auth.workspace_store import WorkspaceStore

        self.db = db
        self.access = AccessEvaluator(db)
        self.users = UserStore(db, password_min_length=settings.password_min_length)
        self.sessions = SessionStore(db)
        self.notifications = NotificationStore(db)
        self.workspaces = WorkspaceStore(db, self.access)
        self.invitations = InvitationStore(
            db, self.access, self.workspaces, self.users, self.notifications,
            expiry_days=settings.invitation_expiry_days,
        )

    def user(self, email: str, name: str = ""):
        return self.users.create_user(email, name or email.split("@")[0].title(), "password123")

    def expire_invitation(self, invitation_id: str) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE workspace_invitations SET expires_at = ? WHERE id = ?",
                ("2000-01-01T00:00:00.000000+00:00", invitation_id),
            )


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Fresh, initialized database per test."""
    database = Database(tmp_path / "test.db")
    database.init()
    return database


@pytest.fixture
def stores(db: Database, settings: Settings) -> Stores:
    return Stores(db, settings)


@pytest.fixture
def app(db: Database, settings: Settings):
    from webapp.server import create_app
    return create_app(settings=settings, db=db)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_client(app):
    """Factory for extra clients sharing the same app (one per signed-in user)."""
    from fastapi.testclient import TestClient

    clients = []

    def _make():
        c = TestClient(app)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()
