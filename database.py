"""
SQLite database layer for the tutoring platform.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations.
"""

from __future__ import annotations

import fcntl
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from flask import current_app, g
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Accounts (admin | student)
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL,
    grade TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Per-subject enrollment for each student
CREATE TABLE IF NOT EXISTS enrollments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    subject TEXT NOT NULL,
    grade TEXT NOT NULL,
    group_name TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Uploaded materials
CREATE TABLE IF NOT EXISTS materials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT,
    grade TEXT NOT NULL,
    title TEXT NOT NULL,
    file_path TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS homeworks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT,
    grade TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    due_date TEXT,
    file_path TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS hw_submissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    homework_id INTEGER NOT NULL REFERENCES homeworks(id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    file_path TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS quizzes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT,
    grade TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    quiz_id INTEGER NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
    position INTEGER NOT NULL DEFAULT 0,
    text TEXT NOT NULL,
    options_json TEXT NOT NULL,
    correct_index INTEGER NOT NULL
);

-- Quiz attempts. No FK on quiz_id: results are kept after the quiz is deleted.
CREATE TABLE IF NOT EXISTS results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    quiz_id INTEGER NOT NULL,
    score INTEGER NOT NULL,
    total INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Weekly reports for parents
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    date TEXT,
    attendance TEXT,
    lesson TEXT,
    homework_status TEXT,
    attentiveness TEXT,
    test_grade INTEGER,
    notes TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Daily lesson files by subject, grade and group
CREATE TABLE IF NOT EXISTS daily_lessons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT,
    grade TEXT NOT NULL,
    group_name TEXT,
    title TEXT NOT NULL,
    description TEXT,
    file_path TEXT NOT NULL,
    date TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);
"""


# Ordered, additive-only. Each step runs once and is recorded in schema_version.
MIGRATIONS: list[tuple[int, str]] = [
    # Migration 2: default group on accounts
    (2, """
        ALTER TABLE users ADD COLUMN group_name TEXT;
    """),

    # Migration 3: optional group + description on materials
    (3, """
        ALTER TABLE materials ADD COLUMN group_name TEXT;
        ALTER TABLE materials ADD COLUMN description TEXT;
    """),

    # Migration 4: per-group homeworks and quizzes
    (4, """
        ALTER TABLE homeworks ADD COLUMN group_name TEXT;
        ALTER TABLE quizzes ADD COLUMN group_name TEXT;
    """),

    # Migration 5: enrollment uniqueness (NULL group compared as '') + lookup indexes
    (5, """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_enrollments_tuple
            ON enrollments(user_id, subject, grade, IFNULL(group_name, ''));
        CREATE INDEX IF NOT EXISTS idx_enrollments_user ON enrollments(user_id);
        CREATE INDEX IF NOT EXISTS idx_enrollments_subject_grade_group
            ON enrollments(subject, grade, group_name);
        CREATE INDEX IF NOT EXISTS idx_questions_quiz ON questions(quiz_id, position);
        CREATE INDEX IF NOT EXISTS idx_results_user ON results(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_submissions_hw_user ON hw_submissions(homework_id, user_id);
        CREATE INDEX IF NOT EXISTS idx_reports_user ON reports(user_id, date);
    """),

    # Migration 6: audit trail
    (6, """
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            detail TEXT NOT NULL DEFAULT '',
            ip_address TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL DEFAULT ''
        );
        CREATE INDEX IF NOT EXISTS idx_audit_log_created ON audit_log(created_at);
    """),
]


def _db_path() -> str:
    return current_app.config.get("DATABASE", str(Path(__file__).parent / "data.db"))


def get_db() -> sqlite3.Connection:
    """Return a DB connection from Flask g, creating if needed."""
    if "db" not in g:
        g.db = sqlite3.connect(_db_path())
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler: close the DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    row = db.execute("SELECT version FROM schema_version WHERE version = 1").fetchone()
    if not row:
        db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (1, ?)",
            (datetime.now().isoformat(),),
        )
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    workers start simultaneously.
    """
    lock_file = None
    lock_path = Path(_db_path()).with_suffix(".migration.lock")
    try:
        lock_file = open(lock_path, "w")
        fcntl.flock(lock_file, fcntl.LOCK_EX)
    except OSError:
        lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            try:
                db.executescript(sql)
            except sqlite3.OperationalError as e:
                err_msg = str(e).lower()
                if "duplicate column" not in err_msg and "already exists" not in err_msg:
                    raise
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.now().isoformat()),
            )
            db.commit()
            logger.info("Applied migration %d", version)
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def ensure_default_admin() -> None:
    """Seed the configured admin account when no admin exists."""
    db = get_db()
    existing = db.execute("SELECT id FROM users WHERE role = 'admin' LIMIT 1").fetchone()
    if existing:
        return
    username = current_app.config.get("DEFAULT_ADMIN_USERNAME", "admin")
    password = current_app.config.get("DEFAULT_ADMIN_PASSWORD", "admin123")
    db.execute(
        "INSERT INTO users (username, password_hash, role, created_at) VALUES (?, ?, 'admin', ?)",
        (username, generate_password_hash(password), datetime.now().isoformat()),
    )
    db.commit()
    logger.warning("Created default admin account %r; change its password.", username)


def bootstrap() -> None:
    """Create the schema, apply migrations and seed the admin."""
    init_db()
    run_migrations()
    ensure_default_admin()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            bootstrap()
            app._db_initialized = True
