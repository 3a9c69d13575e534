"""Weekly parent report routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from db_stores import ReportStoreDB
from errors import ValidationFailed
from helpers import admin_required, current_user_id, request_data

bp = Blueprint("reports", __name__)


@bp.route("/api/admin/reports", methods=["POST"])
@admin_required
def create_report():
    report_id = ReportStoreDB.create(request_data())
    return jsonify({"ok": True, "id": report_id})


@bp.route("/api/admin/reports")
@admin_required
def list_reports():
    user_id = request.args.get("user_id")
    grade = request.args.get("grade")
    if user_id:
        if not user_id.isdigit():
            raise ValidationFailed("invalid_user_id", "user_id must be an integer")
        return jsonify(ReportStoreDB.list_for_user(int(user_id)))
    if grade:
        return jsonify(ReportStoreDB.list_for_grade(grade))
    return jsonify(ReportStoreDB.list_all())


@bp.route("/api/admin/reports/<int:report_id>", methods=["DELETE"])
@admin_required
def delete_report(report_id):
    ReportStoreDB.delete(report_id)
    return jsonify({"ok": True})


@bp.route("/api/my/reports")
@login_required
def my_reports():
    return jsonify(ReportStoreDB.list_for_user(current_user_id()))
