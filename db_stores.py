"""
DB-backed store classes for the tutoring platform.

Accounts and enrollments, the generic content catalog, quizzes and results,
homework submissions and weekly reports. Stores raise errors.AppError
subclasses; routes only translate HTTP input into calls here.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from content_kinds import QUIZ, ContentKind, clean
from database import get_db
from errors import Conflict, NotFound, ValidationFailed


def _now() -> str:
    return datetime.now().isoformat()


def _is_duplicate_enrollment(exc: sqlite3.IntegrityError) -> bool:
    msg = str(exc)
    return "uq_enrollments_tuple" in msg or "enrollments.user_id" in msg


# ── Accounts & Enrollments ────────────────────────────────────────


class AccountStoreDB:
    """Admin and student accounts."""

    @staticmethod
    def get(user_id: int) -> dict | None:
        db = get_db()
        row = db.execute(
            "SELECT id, username, role, grade, group_name, created_at FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return dict(row) if row else None

    @staticmethod
    def get_student(user_id: int) -> dict:
        user = AccountStoreDB.get(user_id)
        if not user or user["role"] != "student":
            raise NotFound("user_not_found", f"No student with id {user_id}")
        return user

    @staticmethod
    def verify(username: str, password: str) -> dict | None:
        """Exact username lookup + password check. Returns the account or None."""
        if not username or not password:
            return None
        db = get_db()
        row = db.execute(
            "SELECT id, username, password_hash, role, grade, group_name FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        if not row or not check_password_hash(row["password_hash"], password):
            return None
        user = dict(row)
        user.pop("password_hash")
        return user

    @staticmethod
    def normalize_enrollments(grade: str, enrollments: Any = None,
                              subject: Any = None, group_name: Any = None) -> list[tuple]:
        """Build the (subject, grade, group) list for a new student.

        Items without a subject are dropped, every item takes the student's
        grade, exact duplicates collapse. A bare subject/group pair is
        accepted in place of the list.
        """
        if isinstance(enrollments, list):
            raw = [
                (clean(e.get("subject")), clean(e.get("group_name")))
                for e in enrollments
                if isinstance(e, dict)
            ]
        elif clean(subject):
            raw = [(clean(subject), clean(group_name))]
        else:
            raw = []

        result: list[tuple] = []
        for subj, group in raw:
            if not subj:
                continue
            item = (subj, grade, group)
            if item not in result:
                result.append(item)
        return result

    @staticmethod
    def create_student(username: str, password: str, grade: str,
                       enrollments: list[tuple]) -> int:
        """Insert a student and its enrollments in one transaction."""
        username, grade = clean(username), clean(grade)
        if not username or not password or not grade:
            raise ValidationFailed("missing_fields", "username, password and grade are required")
        if not enrollments:
            raise ValidationFailed("missing_enrollments", "At least one subject enrollment is required")

        db = get_db()
        if db.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone():
            raise Conflict("duplicate_username", f"Username {username!r} is taken")

        default_group = enrollments[0][2]
        now = _now()
        try:
            cur = db.execute(
                "INSERT INTO users (username, password_hash, role, grade, group_name, created_at) "
                "VALUES (?, ?, 'student', ?, ?, ?)",
                (username, generate_password_hash(password), grade, default_group, now),
            )
            user_id = cur.lastrowid
            db.executemany(
                "INSERT INTO enrollments (user_id, subject, grade, group_name, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                [(user_id, s, g, grp, now) for s, g, grp in enrollments],
            )
            db.commit()
        except sqlite3.IntegrityError as e:
            db.rollback()
            if "users.username" in str(e):
                raise Conflict("duplicate_username", f"Username {username!r} is taken") from e
            raise
        return user_id

    @staticmethod
    def list_students(q: str | None = None, subject: str | None = None,
                      grade: str | None = None, group_name: str | None = None) -> list[dict]:
        """Students with all their enrollments, one record per student.

        Enrollment filters pick which students are listed; they never
        duplicate a student or trim its enrollment list.
        """
        db = get_db()
        where = ["u.role = 'student'"]
        params: list[Any] = []
        if q:
            where.append("u.username LIKE ?")
            params.append(f"%{q}%")

        enroll_filters = []
        for col, value in (("subject", subject), ("grade", grade), ("group_name", group_name)):
            if value:
                enroll_filters.append(f"e.{col} = ?")
                params.append(value)
        if enroll_filters:
            where.append(
                "EXISTS (SELECT 1 FROM enrollments e WHERE e.user_id = u.id AND "
                + " AND ".join(enroll_filters) + ")"
            )

        users = db.execute(
            "SELECT u.id, u.username, u.grade, u.group_name FROM users u "
            f"WHERE {' AND '.join(where)} ORDER BY u.username",
            params,
        ).fetchall()
        if not users:
            return []

        ids = [u["id"] for u in users]
        placeholders = ",".join("?" for _ in ids)
        by_user: dict[int, list[dict]] = {uid: [] for uid in ids}
        for e in db.execute(
            f"SELECT user_id, subject, grade, group_name FROM enrollments "
            f"WHERE user_id IN ({placeholders}) ORDER BY id",
            ids,
        ).fetchall():
            by_user[e["user_id"]].append(
                {"subject": e["subject"], "grade": e["grade"], "group_name": e["group_name"]}
            )

        return [
            {
                "id": u["id"],
                "username": u["username"],
                "default_grade": u["grade"],
                "default_group": u["group_name"],
                "enrollments": by_user[u["id"]],
            }
            for u in users
        ]

    @staticmethod
    def delete_student(user_id: int) -> list[str]:
        """Delete a student (cascades). Returns the submission files left to clean up."""
        db = get_db()
        user = AccountStoreDB.get(user_id)
        if not user:
            raise NotFound("not_found", f"No user with id {user_id}")
        if user["role"] != "student":
            raise ValidationFailed("cannot_delete_non_student", "Only student accounts can be deleted")
        files = [
            r["file_path"]
            for r in db.execute("SELECT file_path FROM hw_submissions WHERE user_id = ?", (user_id,))
        ]
        db.execute("DELETE FROM users WHERE id = ?", (user_id,))
        db.commit()
        return files


class EnrollmentStoreDB:
    """Student ↔ (subject, grade, group) registrations."""

    @staticmethod
    def enroll(user_id: int, subject: str, grade: str, group_name: str | None = None) -> int:
        subject, grade, group_name = clean(subject), clean(grade), clean(group_name)
        if not subject or not grade:
            raise ValidationFailed("missing_fields", "subject and grade are required")
        AccountStoreDB.get_student(user_id)

        db = get_db()
        existing = db.execute(
            "SELECT id FROM enrollments WHERE user_id = ? AND subject = ? AND grade = ? "
            "AND IFNULL(group_name, '') = IFNULL(?, '')",
            (user_id, subject, grade, group_name),
        ).fetchone()
        if existing:
            raise Conflict("duplicate_enrollment", "Student is already enrolled in this subject/grade/group")
        try:
            cur = db.execute(
                "INSERT INTO enrollments (user_id, subject, grade, group_name, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (user_id, subject, grade, group_name, _now()),
            )
            db.commit()
        except sqlite3.IntegrityError as e:
            db.rollback()
            if _is_duplicate_enrollment(e):
                raise Conflict("duplicate_enrollment",
                               "Student is already enrolled in this subject/grade/group") from e
            raise
        return cur.lastrowid

    @staticmethod
    def list_for(user_id: int) -> list[dict]:
        db = get_db()
        rows = db.execute(
            "SELECT id, subject, grade, group_name, created_at FROM enrollments "
            "WHERE user_id = ? ORDER BY id",
            (user_id,),
        ).fetchall()
        return [dict(r) for r in rows]


# ── Content catalog ───────────────────────────────────────────────


class ContentStoreDB:
    """Create / list / delete for any ContentKind."""

    @staticmethod
    def create(kind: ContentKind, fields: dict[str, Any], file_path: str | None = None) -> int:
        kind.validate(fields, has_file=file_path is not None)
        cols = list(kind.columns)
        values = [fields.get(c) for c in cols]
        if kind.file_policy != "none":
            cols.append("file_path")
            values.append(file_path)
        cols.append("created_at")
        values.append(_now())

        db = get_db()
        cur = db.execute(
            f"INSERT INTO {kind.table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            values,
        )
        db.commit()
        return cur.lastrowid

    @staticmethod
    def get(kind: ContentKind, item_id: int) -> dict | None:
        db = get_db()
        row = db.execute(f"SELECT * FROM {kind.table} WHERE id = ?", (item_id,)).fetchone()
        return dict(row) if row else None

    @staticmethod
    def require(kind: ContentKind, item_id: int) -> dict:
        item = ContentStoreDB.get(kind, item_id)
        if item is None:
            raise NotFound("not_found", f"No {kind.name} with id {item_id}")
        return item

    @staticmethod
    def admin_list(kind: ContentKind, subject: str | None = None, grade: str | None = None,
                   group_name: str | None = None, q: str | None = None) -> list[dict]:
        where, params = [], []
        for col, value in (("subject", subject), ("grade", grade), ("group_name", group_name)):
            if value:
                where.append(f"{col} = ?")
                params.append(value)
        if q:
            where.append("title LIKE ?")
            params.append(f"%{q}%")
        clause = f"WHERE {' AND '.join(where)} " if where else ""
        db = get_db()
        rows = db.execute(
            f"SELECT * FROM {kind.table} {clause}ORDER BY {kind.order_by()}", params
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def delete(kind: ContentKind, item_id: int) -> list[str]:
        """Delete one row. Returns the file references that should be removed."""
        item = ContentStoreDB.require(kind, item_id)
        db = get_db()
        files = [item["file_path"]] if item.get("file_path") else []
        if kind.table == "homeworks":
            files += [
                r["file_path"]
                for r in db.execute("SELECT file_path FROM hw_submissions WHERE homework_id = ?", (item_id,))
            ]
        db.execute(f"DELETE FROM {kind.table} WHERE id = ?", (item_id,))
        db.commit()
        return files

    @staticmethod
    def purge(kind: ContentKind) -> int:
        db = get_db()
        cur = db.execute(f"DELETE FROM {kind.table}")
        db.commit()
        return cur.rowcount


# ── Quizzes & results ─────────────────────────────────────────────


def as_index(value: Any) -> int | None:
    """Integer value of an id or option index, or None.

    Booleans and fractional numbers are rejected rather than truncated;
    strings must parse as base-10 integers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_question(text: Any, options: Any, correct_index: Any) -> tuple[str, list[str], int]:
    """Return (text, options, correct_index) or raise ValidationFailed('invalid_question')."""
    text = clean(text)
    if not text:
        raise ValidationFailed("invalid_question", "Question text is required")
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationFailed("invalid_question", "At least two options are required")
    opts = [str(o) for o in options]
    idx = as_index(correct_index)
    if idx is None:
        raise ValidationFailed("invalid_question", "correctIndex must be an integer")
    if not 0 <= idx < len(opts):
        raise ValidationFailed("invalid_question", f"correctIndex must be between 0 and {len(opts) - 1}")
    return text, opts, idx


def score_answers(questions: list[dict], answers: list) -> int:
    """Count answers whose index equals the question's correct index.

    Unknown question ids, malformed entries and unanswered questions score
    nothing. A repeated question id keeps its last answer.
    """
    answer_map: dict[int, int] = {}
    for a in answers:
        if not isinstance(a, dict):
            continue
        qid = as_index(a.get("questionId", a.get("question_id")))
        idx = as_index(a.get("answerIndex", a.get("answer_index")))
        if qid is None or idx is None:
            continue
        answer_map[qid] = idx
    return sum(1 for q in questions if answer_map.get(q["id"]) == q["correct_index"])


class QuizStoreDB:
    """Questions of a quiz; quiz rows themselves go through ContentStoreDB."""

    @staticmethod
    def add_question(quiz_id: int, text: Any, options: Any, correct_index: Any) -> int:
        text, opts, idx = validate_question(text, options, correct_index)
        ContentStoreDB.require(QUIZ, quiz_id)
        db = get_db()
        position = db.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 AS p FROM questions WHERE quiz_id = ?", (quiz_id,)
        ).fetchone()["p"]
        cur = db.execute(
            "INSERT INTO questions (quiz_id, position, text, options_json, correct_index) "
            "VALUES (?, ?, ?, ?, ?)",
            (quiz_id, position, text, json.dumps(opts), idx),
        )
        db.commit()
        return cur.lastrowid

    @staticmethod
    def questions(quiz_id: int, include_answers: bool = False) -> list[dict]:
        db = get_db()
        rows = db.execute(
            "SELECT id, text, options_json, correct_index FROM questions "
            "WHERE quiz_id = ? ORDER BY position, id",
            (quiz_id,),
        ).fetchall()
        result = []
        for r in rows:
            q = {"id": r["id"], "text": r["text"], "options": json.loads(r["options_json"])}
            if include_answers:
                q["correct_index"] = r["correct_index"]
            result.append(q)
        return result

    @staticmethod
    def get_with_questions(quiz_id: int, include_answers: bool = False) -> dict:
        quiz = ContentStoreDB.require(QUIZ, quiz_id)
        return {"quiz": quiz, "questions": QuizStoreDB.questions(quiz_id, include_answers)}

    @staticmethod
    def create_with_questions(subject: str, grade: str, group_name: str | None,
                              title: str, questions: list[tuple[str, list[str], int]]) -> int:
        """Insert a quiz and its already-validated questions atomically."""
        fields = QUIZ.clean_fields({"subject": subject, "grade": grade,
                                    "group_name": group_name, "title": title})
        QUIZ.validate(fields, has_file=False)
        db = get_db()
        try:
            cur = db.execute(
                "INSERT INTO quizzes (subject, grade, group_name, title, created_at) VALUES (?, ?, ?, ?, ?)",
                (fields["subject"], fields["grade"], fields["group_name"], fields["title"], _now()),
            )
            quiz_id = cur.lastrowid
            db.executemany(
                "INSERT INTO questions (quiz_id, position, text, options_json, correct_index) "
                "VALUES (?, ?, ?, ?, ?)",
                [(quiz_id, pos, text, json.dumps(opts), idx) for pos, (text, opts, idx) in enumerate(questions)],
            )
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return quiz_id


class ResultStoreDB:
    """Quiz attempts. Append-only."""

    @staticmethod
    def submit(quiz_id: int, user_id: int, answers: Any) -> dict:
        if not isinstance(answers, list):
            raise ValidationFailed("invalid_answers", "answers must be a list of {questionId, answerIndex}")
        ContentStoreDB.require(QUIZ, quiz_id)
        questions = QuizStoreDB.questions(quiz_id, include_answers=True)
        score = score_answers(questions, answers)
        total = len(questions)

        db = get_db()
        cur = db.execute(
            "INSERT INTO results (user_id, quiz_id, score, total, created_at) VALUES (?, ?, ?, ?, ?)",
            (user_id, quiz_id, score, total, _now()),
        )
        db.commit()
        return {"id": cur.lastrowid, "score": score, "total": total}

    @staticmethod
    def for_user(user_id: int) -> list[dict]:
        db = get_db()
        rows = db.execute(
            "SELECT r.id, r.quiz_id, r.score, r.total, r.created_at, "
            "COALESCE(q.title, '(deleted)') AS title "
            "FROM results r LEFT JOIN quizzes q ON q.id = r.quiz_id "
            "WHERE r.user_id = ? ORDER BY r.created_at DESC, r.id DESC",
            (user_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def for_grade(grade: str) -> list[dict]:
        if not clean(grade):
            raise ValidationFailed("missing_grade", "grade is required")
        db = get_db()
        rows = db.execute(
            "SELECT r.id, u.username, u.grade, r.quiz_id, COALESCE(q.title, '(deleted)') AS title, "
            "r.score, r.total, r.created_at "
            "FROM results r JOIN users u ON u.id = r.user_id "
            "LEFT JOIN quizzes q ON q.id = r.quiz_id "
            "WHERE u.grade = ? ORDER BY r.created_at DESC, r.id DESC",
            (grade,),
        ).fetchall()
        return [dict(r) for r in rows]


# ── Homework submissions ──────────────────────────────────────────


class SubmissionStoreDB:
    """Homework uploads. Resubmitting adds a row; the newest one is current."""

    @staticmethod
    def submit(homework_id: int, user_id: int, file_path: str) -> int:
        db = get_db()
        cur = db.execute(
            "INSERT INTO hw_submissions (homework_id, user_id, file_path, created_at) VALUES (?, ?, ?, ?)",
            (homework_id, user_id, file_path, _now()),
        )
        db.commit()
        return cur.lastrowid

    @staticmethod
    def latest(homework_id: int, user_id: int) -> dict | None:
        db = get_db()
        row = db.execute(
            "SELECT id, file_path, created_at FROM hw_submissions "
            "WHERE homework_id = ? AND user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1",
            (homework_id, user_id),
        ).fetchone()
        return dict(row) if row else None

    @staticmethod
    def list_for_homework(homework_id: int) -> list[dict]:
        db = get_db()
        rows = db.execute(
            "SELECT s.id, s.file_path, s.created_at, u.id AS user_id, u.username, u.grade "
            "FROM hw_submissions s JOIN users u ON u.id = s.user_id "
            "WHERE s.homework_id = ? ORDER BY s.created_at DESC, s.id DESC",
            (homework_id,),
        ).fetchall()
        return [dict(r) for r in rows]


# ── Weekly reports ────────────────────────────────────────────────


REPORT_FIELDS = ("date", "attendance", "lesson", "homework_status", "attentiveness", "test_grade", "notes")


class ReportStoreDB:
    """Weekly per-student reports for parents."""

    @staticmethod
    def create(data: dict[str, Any]) -> int:
        user_id = data.get("user_id")
        if user_id in (None, ""):
            raise ValidationFailed("missing_user_id", "user_id is required")
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise ValidationFailed("invalid_user_id", "user_id must be an integer") from None
        AccountStoreDB.get_student(user_id)

        values = {f: clean(data.get(f)) for f in REPORT_FIELDS}
        if values["test_grade"] is not None:
            try:
                values["test_grade"] = int(values["test_grade"])
            except ValueError:
                raise ValidationFailed("invalid_test_grade", "test_grade must be an integer") from None

        db = get_db()
        cur = db.execute(
            f"INSERT INTO reports (user_id, {', '.join(REPORT_FIELDS)}, created_at) "
            f"VALUES (?, {', '.join('?' for _ in REPORT_FIELDS)}, ?)",
            (user_id, *[values[f] for f in REPORT_FIELDS], _now()),
        )
        db.commit()
        return cur.lastrowid

    @staticmethod
    def _list(where: str = "", params: tuple = ()) -> list[dict]:
        db = get_db()
        rows = db.execute(
            "SELECT r.*, u.username FROM reports r JOIN users u ON u.id = r.user_id "
            f"{where} ORDER BY r.date DESC, r.created_at DESC, r.id DESC",
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def list_for_user(user_id: int) -> list[dict]:
        return ReportStoreDB._list("WHERE r.user_id = ?", (user_id,))

    @staticmethod
    def list_for_grade(grade: str) -> list[dict]:
        return ReportStoreDB._list("WHERE u.grade = ?", (grade,))

    @staticmethod
    def list_all() -> list[dict]:
        return ReportStoreDB._list()

    @staticmethod
    def delete(report_id: int) -> None:
        db = get_db()
        if not db.execute("SELECT 1 FROM reports WHERE id = ?", (report_id,)).fetchone():
            raise NotFound("not_found", f"No report with id {report_id}")
        db.execute("DELETE FROM reports WHERE id = ?", (report_id,))
        db.commit()
