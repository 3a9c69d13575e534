"""Quiz questions, attempts and results routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from audit import log_event
from content_kinds import QUIZ
from db_stores import ContentStoreDB, QuizStoreDB, ResultStoreDB
from errors import NotFound
from helpers import admin_required, current_user_id, request_data
from visibility import is_visible

bp = Blueprint("quiz", __name__)


def _visible_quiz(quiz_id: int, user_id: int) -> None:
    # Admins hold no enrollments; existence is checked by the store.
    if current_user.is_admin:
        return
    if not is_visible(QUIZ, quiz_id, user_id):
        raise NotFound("not_found", f"No quiz with id {quiz_id}")


# ── Admin ──────────────────────────────────────────────────

@bp.route("/api/admin/quizzes/<int:quiz_id>/questions", methods=["POST"])
@admin_required
def add_question(quiz_id):
    data = request_data()
    question_id = QuizStoreDB.add_question(
        quiz_id,
        data.get("text"),
        data.get("options"),
        data.get("correctIndex", data.get("correct_index")),
    )
    return jsonify({"ok": True, "id": question_id})


@bp.route("/api/admin/quizzes/<int:quiz_id>")
@admin_required
def admin_get_quiz(quiz_id):
    return jsonify(QuizStoreDB.get_with_questions(quiz_id, include_answers=True))


@bp.route("/api/admin/quizzes", methods=["DELETE"])
@admin_required
def purge_quizzes():
    removed = ContentStoreDB.purge(QUIZ)
    log_event("quiz_purge", current_user_id(), f"removed={removed}")
    return jsonify({"ok": True, "removed": removed})


@bp.route("/api/admin/results")
@admin_required
def results_for_grade():
    return jsonify(ResultStoreDB.for_grade(request.args.get("grade", "")))


# ── Student ────────────────────────────────────────────────

@bp.route("/api/quizzes/<int:quiz_id>")
@login_required
def get_quiz(quiz_id):
    _visible_quiz(quiz_id, current_user_id())
    return jsonify(QuizStoreDB.get_with_questions(quiz_id))


@bp.route("/api/quizzes/<int:quiz_id>/submit", methods=["POST"])
@login_required
def submit_quiz(quiz_id):
    uid = current_user_id()
    _visible_quiz(quiz_id, uid)
    answers = request_data().get("answers", [])
    result = ResultStoreDB.submit(quiz_id, uid, answers)
    return jsonify({"ok": True, "score": result["score"], "total": result["total"]})


@bp.route("/api/my/results")
@login_required
def my_results():
    return jsonify(ResultStoreDB.for_user(current_user_id()))
