"""AI quiz generation route."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from audit import log_event
from content_kinds import clean
from db_stores import QuizStoreDB
from errors import ValidationFailed
from extensions import get_quiz_generator
from helpers import admin_required, current_user_id, request_data

bp = Blueprint("ai", __name__)

DEFAULT_QUESTION_COUNT = 5


def _question_count(raw, maximum: int) -> int:
    try:
        count = int(raw) if raw not in (None, "") else DEFAULT_QUESTION_COUNT
    except (TypeError, ValueError):
        count = DEFAULT_QUESTION_COUNT
    return max(1, min(maximum, count))


@bp.route("/api/admin/ai-quiz", methods=["POST"])
@admin_required
def generate_quiz():
    data = request_data()
    subject, grade = clean(data.get("subject")), clean(data.get("grade"))
    group_name, topic = clean(data.get("group_name")), clean(data.get("topic"))
    if not subject or not grade:
        raise ValidationFailed("missing_fields", "subject and grade are required")
    count = _question_count(data.get("count"), current_app.config.get("AI_QUIZ_MAX_QUESTIONS", 20))

    generator = get_quiz_generator()
    generated = generator.generate(subject, grade, group_name, topic, count)

    quiz_id = QuizStoreDB.create_with_questions(
        subject, grade, group_name, generated.title,
        [(q.text, q.options, q.correct_index) for q in generated.questions],
    )
    log_event(
        "ai_quiz_generate",
        current_user_id(),
        f"quiz_id={quiz_id} provider={generator.provider} questions={len(generated.questions)}",
    )
    return jsonify({"ok": True, "id": quiz_id, "questions": len(generated.questions)})
