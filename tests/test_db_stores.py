"""Store-level tests for db_stores.py."""

from __future__ import annotations

import pytest

from content_kinds import DAILY_LESSON, MATERIAL, QUIZ
from errors import Conflict, NotFound, ValidationFailed


@pytest.fixture
def ctx(app):
    with app.test_request_context():
        yield


class TestAccountStore:
    def test_normalize_enrollments(self):
        from db_stores import AccountStoreDB
        result = AccountStoreDB.normalize_enrollments("5", enrollments=[
            {"subject": " mate ", "group_name": " A "},
            {"subject": "mate", "group_name": "A"},
            {"subject": None},
            "junk",
            {"subject": "info", "group_name": ""},
        ])
        assert result == [("mate", "5", "A"), ("info", "5", None)]

    def test_normalize_legacy_body(self):
        from db_stores import AccountStoreDB
        assert AccountStoreDB.normalize_enrollments("5", subject="bio", group_name="B") == [("bio", "5", "B")]
        assert AccountStoreDB.normalize_enrollments("5") == []

    def test_verify(self, ctx):
        from db_stores import AccountStoreDB
        AccountStoreDB.create_student("ana", "pw", "5", [("mate", "5", "A")])
        user = AccountStoreDB.verify("ana", "pw")
        assert user["username"] == "ana"
        assert "password_hash" not in user
        assert AccountStoreDB.verify("ana", "PW") is None
        assert AccountStoreDB.verify("ana ", "pw") is None

    def test_create_is_atomic(self, ctx):
        from database import get_db
        from db_stores import AccountStoreDB
        AccountStoreDB.create_student("ana", "pw", "5", [("mate", "5", "A")])
        with pytest.raises(Conflict):
            AccountStoreDB.create_student("ana", "pw", "6", [("info", "6", None)])
        n = get_db().execute("SELECT COUNT(*) AS n FROM enrollments WHERE subject = 'info'").fetchone()["n"]
        assert n == 0


class TestContentStore:
    def test_create_validates(self, ctx):
        from db_stores import ContentStoreDB
        with pytest.raises(ValidationFailed):
            ContentStoreDB.create(MATERIAL, MATERIAL.clean_fields({"subject": "m", "grade": "5", "title": "t"}))

    def test_create_and_get(self, ctx):
        from db_stores import ContentStoreDB
        fields = DAILY_LESSON.clean_fields({"subject": "m", "grade": "5", "group_name": "A",
                                            "title": "t", "date": "2026-03-02"})
        item_id = ContentStoreDB.create(DAILY_LESSON, fields, "/uploads/x.pdf")
        row = ContentStoreDB.get(DAILY_LESSON, item_id)
        assert row["file_path"] == "/uploads/x.pdf"
        assert row["date"] == "2026-03-02"

    def test_quiz_has_no_file_column(self, ctx):
        from db_stores import ContentStoreDB
        quiz_id = ContentStoreDB.create(QUIZ, QUIZ.clean_fields({"subject": "m", "grade": "5", "title": "q"}))
        assert "file_path" not in ContentStoreDB.get(QUIZ, quiz_id)

    def test_delete_returns_files(self, ctx):
        from db_stores import ContentStoreDB
        fields = MATERIAL.clean_fields({"subject": "m", "grade": "5", "title": "t"})
        item_id = ContentStoreDB.create(MATERIAL, fields, "/uploads/m.pdf")
        assert ContentStoreDB.delete(MATERIAL, item_id) == ["/uploads/m.pdf"]
        with pytest.raises(NotFound):
            ContentStoreDB.delete(MATERIAL, item_id)


class TestQuizStore:
    def test_create_with_questions(self, ctx):
        from db_stores import QuizStoreDB
        quiz_id = QuizStoreDB.create_with_questions(
            "m", "5", None, "AI quiz", [("q1", ["a", "b"], 1), ("q2", ["c", "d", "e"], 2)],
        )
        full = QuizStoreDB.get_with_questions(quiz_id, include_answers=True)
        assert full["quiz"]["group_name"] is None
        assert [(q["text"], q["correct_index"]) for q in full["questions"]] == [("q1", 1), ("q2", 2)]

    def test_positions_follow_insertion(self, ctx):
        from db_stores import ContentStoreDB, QuizStoreDB
        quiz_id = ContentStoreDB.create(QUIZ, QUIZ.clean_fields({"subject": "m", "grade": "5", "title": "q"}))
        for text in ("first", "second", "third"):
            QuizStoreDB.add_question(quiz_id, text, ["x", "y"], 0)
        assert [q["text"] for q in QuizStoreDB.questions(quiz_id)] == ["first", "second", "third"]

    def test_submit_unknown_quiz(self, ctx):
        from db_stores import ResultStoreDB
        with pytest.raises(NotFound):
            ResultStoreDB.submit(999, 1, [])


class TestReportStore:
    def test_blank_fields_stored_as_null(self, ctx):
        from db_stores import AccountStoreDB, ReportStoreDB
        uid = AccountStoreDB.create_student("ana", "pw", "5", [("m", "5", None)])
        ReportStoreDB.create({"user_id": str(uid), "notes": "  ", "test_grade": ""})
        row = ReportStoreDB.list_for_user(uid)[0]
        assert row["notes"] is None
        assert row["test_grade"] is None
