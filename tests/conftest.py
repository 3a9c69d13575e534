"""
Test fixtures for the tutoring API.

Provides app, client, admin_headers, a make_student factory and content
helpers, all against a file-based SQLite database and a temporary upload dir.
No AI provider key is configured; AI tests install a fake generator.
"""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "SECRET_KEY": "test-secret-key",
        "SESSION_BACKEND": "memory",
        "ANTHROPIC_API_KEY": "",
        "GOOGLE_API_KEY": "",
    })

    with app.app_context():
        from database import bootstrap
        bootstrap()
    app._db_initialized = True

    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


def login(client, username: str, password: str) -> dict:
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


@pytest.fixture
def admin_headers(client):
    """Bearer headers for the seeded admin account."""
    return login(client, "admin", "admin123")


@pytest.fixture
def make_student(client, admin_headers):
    """Create a student through the API and return (id, auth headers)."""

    def _make(username: str, grade: str = "clasa-5", enrollments=None, password: str = "secret"):
        if enrollments is None:
            enrollments = [{"subject": "matematica", "group_name": "A"}]
        resp = client.post("/api/admin/users", headers=admin_headers, json={
            "username": username,
            "password": password,
            "grade": grade,
            "enrollments": enrollments,
        })
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["id"], login(client, username, password)

    return _make


@pytest.fixture
def create_content(client, admin_headers):
    """POST a content item as admin; adds a small file for kinds that take one."""

    def _create(slug: str, with_file: bool = True, **fields):
        data = dict(fields)
        if with_file:
            data["file"] = (io.BytesIO(b"%PDF-1.4 test"), "lesson.pdf")
            resp = client.post(f"/api/admin/{slug}", headers=admin_headers, data=data,
                               content_type="multipart/form-data")
        else:
            resp = client.post(f"/api/admin/{slug}", headers=admin_headers, json=data)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()

    return _create


@pytest.fixture
def fake_redis():
    fakeredis = pytest.importorskip("fakeredis")
    return fakeredis.FakeRedis()
