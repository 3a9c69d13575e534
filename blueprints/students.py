"""Student accounts and enrollment routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from audit import log_event
from content_kinds import clean
from db_stores import AccountStoreDB, EnrollmentStoreDB
from helpers import admin_required, current_user_id, remove_uploads, request_data
from session_store import get_session_store

bp = Blueprint("students", __name__)


# ── Accounts ───────────────────────────────────────────────

@bp.route("/api/admin/users", methods=["POST"])
@admin_required
def create_student():
    data = request_data()
    grade = clean(data.get("grade")) or ""
    password = data.get("password")
    enrollments = AccountStoreDB.normalize_enrollments(
        grade,
        enrollments=data.get("enrollments"),
        subject=data.get("subject"),
        group_name=data.get("group_name"),
    )
    user_id = AccountStoreDB.create_student(
        clean(data.get("username")) or "",
        password if isinstance(password, str) else "",
        grade,
        enrollments,
    )
    log_event("student_create", current_user_id(), f"student_id={user_id} enrollments={len(enrollments)}")
    return jsonify({"ok": True, "id": user_id})


@bp.route("/api/admin/users")
@admin_required
def list_students():
    return jsonify(AccountStoreDB.list_students(
        q=request.args.get("q"),
        subject=request.args.get("subject"),
        grade=request.args.get("grade"),
        group_name=request.args.get("group_name"),
    ))


@bp.route("/api/admin/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_student(user_id):
    files = AccountStoreDB.delete_student(user_id)
    get_session_store().revoke_all_for(user_id)
    remove_uploads(files)
    log_event("student_delete", current_user_id(), f"student_id={user_id}")
    return jsonify({"ok": True})


# ── Enrollments ────────────────────────────────────────────

@bp.route("/api/admin/users/<int:user_id>/enrollments")
@admin_required
def list_enrollments(user_id):
    AccountStoreDB.get_student(user_id)
    return jsonify(EnrollmentStoreDB.list_for(user_id))


@bp.route("/api/admin/users/<int:user_id>/enrollments", methods=["POST"])
@admin_required
def add_enrollment(user_id):
    data = request_data()
    enrollment_id = EnrollmentStoreDB.enroll(
        user_id,
        data.get("subject"),
        data.get("grade"),
        data.get("group_name"),
    )
    return jsonify({"ok": True, "id": enrollment_id})


@bp.route("/api/my/enrollments")
@login_required
def my_enrollments():
    return jsonify(EnrollmentStoreDB.list_for(current_user_id()))
