"""Tests for database.py: schema, migrations, admin seeding."""

from __future__ import annotations

import sqlite3

import pytest


class TestSchema:
    def test_all_tables_exist(self, db):
        tables = {
            r["name"]
            for r in db.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        for name in ("users", "enrollments", "materials", "homeworks", "hw_submissions",
                     "quizzes", "questions", "results", "reports", "daily_lessons",
                     "audit_log", "schema_version"):
            assert name in tables

    def test_migration_columns_added(self, db):
        def cols(table):
            return {r["name"] for r in db.execute(f"PRAGMA table_info({table})").fetchall()}

        assert "group_name" in cols("users")
        assert {"group_name", "description"} <= cols("materials")
        assert "group_name" in cols("homeworks")
        assert "group_name" in cols("quizzes")

    def test_all_versions_recorded(self, db):
        from database import MIGRATIONS
        versions = {r["version"] for r in db.execute("SELECT version FROM schema_version").fetchall()}
        assert versions == {1} | {v for v, _ in MIGRATIONS}

    def test_migrations_are_idempotent(self, app, db):
        from database import run_migrations, init_db
        before = db.execute("SELECT COUNT(*) AS n FROM schema_version").fetchone()["n"]
        init_db()
        run_migrations()
        after = db.execute("SELECT COUNT(*) AS n FROM schema_version").fetchone()["n"]
        assert before == after

    def test_migration_keeps_existing_rows(self, app, tmp_path):
        """An old database with v1 rows upgrades without losing them."""
        from database import SCHEMA, get_db, run_migrations

        path = tmp_path / "old.db"
        conn = sqlite3.connect(path)
        conn.executescript(SCHEMA)
        conn.execute("INSERT INTO schema_version (version, applied_at) VALUES (1, 'then')")
        conn.execute("INSERT INTO materials (subject, grade, title, file_path) VALUES ('fizica', '7', 'Old', '/uploads/x')")
        conn.commit()
        conn.close()

        with app.app_context():
            app.config["DATABASE"] = str(path)
            run_migrations()
            row = get_db().execute("SELECT title, group_name, description FROM materials").fetchone()
            assert row["title"] == "Old"
            assert row["group_name"] is None
            assert row["description"] is None


class TestConstraints:
    def test_enrollment_tuple_unique_with_null_group(self, db):
        db.execute("INSERT INTO users (username, password_hash, role) VALUES ('s', 'x', 'student')")
        uid = db.execute("SELECT id FROM users WHERE username = 's'").fetchone()["id"]
        db.execute("INSERT INTO enrollments (user_id, subject, grade) VALUES (?, 'mate', '5')", (uid,))
        with pytest.raises(sqlite3.IntegrityError):
            db.execute("INSERT INTO enrollments (user_id, subject, grade) VALUES (?, 'mate', '5')", (uid,))

    def test_user_delete_cascades(self, db):
        db.execute("INSERT INTO users (username, password_hash, role) VALUES ('c', 'x', 'student')")
        uid = db.execute("SELECT id FROM users WHERE username = 'c'").fetchone()["id"]
        db.execute("INSERT INTO enrollments (user_id, subject, grade) VALUES (?, 'mate', '5')", (uid,))
        db.execute("INSERT INTO reports (user_id, notes) VALUES (?, 'ok')", (uid,))
        db.execute("DELETE FROM users WHERE id = ?", (uid,))
        assert db.execute("SELECT COUNT(*) AS n FROM enrollments WHERE user_id = ?", (uid,)).fetchone()["n"] == 0
        assert db.execute("SELECT COUNT(*) AS n FROM reports WHERE user_id = ?", (uid,)).fetchone()["n"] == 0


class TestDefaultAdmin:
    def test_admin_seeded_once(self, app, db):
        from database import ensure_default_admin
        ensure_default_admin()
        admins = db.execute("SELECT username, password_hash FROM users WHERE role = 'admin'").fetchall()
        assert len(admins) == 1
        assert admins[0]["username"] == "admin"
        assert admins[0]["password_hash"] != "admin123"
