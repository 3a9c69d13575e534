"""Generic content routes: materials, homeworks, quizzes, daily lessons.

One set of handlers serves every content kind; the URL slug picks the
ContentKind that carries the kind's fields, upload policy and visibility.
"""

from __future__ import annotations

import logging
import sqlite3

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from audit import log_event
from content_kinds import FILE_NONE, get_kind
from db_stores import ContentStoreDB
from helpers import (
    admin_required,
    current_user_id,
    remove_upload,
    remove_uploads,
    request_data,
    save_upload,
    uploaded_file,
)
from visibility import list_visible

logger = logging.getLogger(__name__)

bp = Blueprint("content", __name__)


@bp.route("/api/admin/<kind_slug>", methods=["POST"])
@admin_required
def create_content(kind_slug):
    kind = get_kind(kind_slug)
    fields = kind.clean_fields(request_data())
    upload = uploaded_file() if kind.file_policy != FILE_NONE else None

    # Nothing is written to disk unless the row would be accepted.
    kind.validate(fields, has_file=upload is not None)

    file_path = save_upload(upload) if upload is not None else None
    try:
        item_id = ContentStoreDB.create(kind, fields, file_path)
    except sqlite3.Error:
        remove_upload(file_path)
        raise

    body = {"ok": True, "id": item_id}
    if file_path:
        body["file_path"] = file_path
    return jsonify(body)


@bp.route("/api/admin/<kind_slug>")
@admin_required
def admin_list_content(kind_slug):
    kind = get_kind(kind_slug)
    return jsonify(ContentStoreDB.admin_list(
        kind,
        subject=request.args.get("subject"),
        grade=request.args.get("grade"),
        group_name=request.args.get("group_name"),
        q=request.args.get("q"),
    ))


@bp.route("/api/admin/<kind_slug>/<int:item_id>", methods=["DELETE"])
@admin_required
def delete_content(kind_slug, item_id):
    kind = get_kind(kind_slug)
    files = ContentStoreDB.delete(kind, item_id)
    remove_uploads(files)
    log_event("content_delete", current_user_id(), f"kind={kind.name} id={item_id}")
    return jsonify({"ok": True})


@bp.route("/api/<kind_slug>")
@login_required
def list_content(kind_slug):
    kind = get_kind(kind_slug)
    if current_user.is_admin:
        return jsonify(ContentStoreDB.admin_list(kind))
    return jsonify(list_visible(kind, current_user_id()))
