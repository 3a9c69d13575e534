"""Homework submission routes."""

from __future__ import annotations

import sqlite3

from flask import Blueprint, jsonify
from flask_login import login_required

from content_kinds import HOMEWORK
from db_stores import ContentStoreDB, SubmissionStoreDB
from errors import NotFound, ValidationFailed
from helpers import admin_required, current_user_id, remove_upload, save_upload, uploaded_file
from visibility import is_visible

bp = Blueprint("homework", __name__)


def _visible_homework(homework_id: int, user_id: int) -> None:
    if not is_visible(HOMEWORK, homework_id, user_id):
        raise NotFound("not_found", f"No homework with id {homework_id}")


@bp.route("/api/homeworks/<int:homework_id>/submit", methods=["POST"])
@login_required
def submit_homework(homework_id):
    uid = current_user_id()
    _visible_homework(homework_id, uid)
    upload = uploaded_file()
    if upload is None:
        raise ValidationFailed("missing_file", "A file is required")

    file_path = save_upload(upload)
    try:
        submission_id = SubmissionStoreDB.submit(homework_id, uid, file_path)
    except sqlite3.Error:
        remove_upload(file_path)
        raise
    return jsonify({"ok": True, "id": submission_id, "file_path": file_path})


@bp.route("/api/homeworks/<int:homework_id>/submission")
@login_required
def my_submission(homework_id):
    uid = current_user_id()
    _visible_homework(homework_id, uid)
    return jsonify(SubmissionStoreDB.latest(homework_id, uid))


@bp.route("/api/admin/homeworks/<int:homework_id>/submissions")
@admin_required
def list_submissions(homework_id):
    ContentStoreDB.require(HOMEWORK, homework_id)
    return jsonify(SubmissionStoreDB.list_for_homework(homework_id))
