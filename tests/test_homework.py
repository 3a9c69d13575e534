"""Tests for homework submissions."""

from __future__ import annotations

import io
import time

import pytest


@pytest.fixture
def homework(create_content):
    return create_content("homeworks", with_file=False, subject="mate", grade="5",
                          group_name="A", title="Exercises")


@pytest.fixture
def ana(make_student):
    return make_student("ana", grade="5", enrollments=[{"subject": "mate", "group_name": "A"}])


def submit(client, hw_id, headers, content=b"my answer", name="answer.pdf"):
    return client.post(f"/api/homeworks/{hw_id}/submit", headers=headers,
                       data={"file": (io.BytesIO(content), name)},
                       content_type="multipart/form-data")


class TestSubmit:
    def test_submit_and_latest(self, client, homework, ana):
        _, headers = ana
        resp = submit(client, homework["id"], headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["file_path"].endswith("-answer.pdf")

        latest = client.get(f"/api/homeworks/{homework['id']}/submission", headers=headers).get_json()
        assert latest["file_path"] == body["file_path"]

    def test_resubmission_adds_row_and_latest_wins(self, client, admin_headers, homework, ana):
        _, headers = ana
        submit(client, homework["id"], headers, name="v1.pdf")
        time.sleep(0.01)
        second = submit(client, homework["id"], headers, name="v2.pdf").get_json()

        latest = client.get(f"/api/homeworks/{homework['id']}/submission", headers=headers).get_json()
        assert latest["file_path"] == second["file_path"]
        rows = client.get(f"/api/admin/homeworks/{homework['id']}/submissions", headers=admin_headers).get_json()
        assert len(rows) == 2

    def test_no_submission_yet(self, client, homework, ana):
        _, headers = ana
        resp = client.get(f"/api/homeworks/{homework['id']}/submission", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json() is None

    def test_missing_file(self, client, homework, ana):
        _, headers = ana
        resp = client.post(f"/api/homeworks/{homework['id']}/submit", headers=headers, data={},
                           content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "missing_file"

    def test_unknown_homework(self, client, ana):
        _, headers = ana
        assert submit(client, 999, headers).status_code == 404

    def test_invisible_homework_is_not_found(self, client, create_content, ana):
        _, headers = ana
        other = create_content("homeworks", with_file=False, subject="mate", grade="5",
                               group_name="B", title="Group B")
        assert submit(client, other["id"], headers).status_code == 404

    def test_requires_auth(self, client, homework):
        assert submit(client, homework["id"], {}).status_code == 401


class TestAdminSubmissions:
    def test_lists_username_and_grade(self, client, admin_headers, homework, ana):
        _, headers = ana
        submit(client, homework["id"], headers)
        rows = client.get(f"/api/admin/homeworks/{homework['id']}/submissions", headers=admin_headers).get_json()
        assert rows[0]["username"] == "ana"
        assert rows[0]["grade"] == "5"

    def test_unknown_homework(self, client, admin_headers):
        resp = client.get("/api/admin/homeworks/999/submissions", headers=admin_headers)
        assert resp.status_code == 404
