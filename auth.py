"""
User authentication: Flask-Login over opaque bearer tokens.

Login issues a token from the session store; every request resolves the
token (``Authorization: Bearer <token>`` or ``X-Auth-Token``) back to a
principal snapshot. Passwords are checked with werkzeug.security.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, g, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_required

from audit import log_event
from db_stores import AccountStoreDB
from errors import AuthenticationRequired, ValidationFailed
from helpers import request_data
from session_store import get_session_store

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()

PRINCIPAL_FIELDS = ("id", "username", "role", "grade", "group_name")


class Principal(UserMixin):
    """The authenticated account behind a session token."""

    def __init__(self, snapshot: dict[str, Any], token: str):
        self.id = snapshot["id"]
        self.username = snapshot["username"]
        self.role = snapshot["role"]
        self.grade = snapshot.get("grade")
        self.group_name = snapshot.get("group_name")
        self.token = token

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict[str, Any]:
        return {f: getattr(self, f) for f in PRINCIPAL_FIELDS}


def token_from_request() -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.headers.get("X-Auth-Token") or None


@login_manager.request_loader
def load_principal_from_request(req):
    token = token_from_request()
    if not token:
        return None
    snapshot = get_session_store().resolve(token)
    if snapshot is None:
        return None
    g.principal_id = snapshot["id"]
    return Principal(snapshot, token)


@login_manager.unauthorized_handler
def _unauthorized():
    raise AuthenticationRequired()


def login(username: str, password: str) -> tuple[str, dict[str, Any]]:
    """Verify credentials and issue a token. Returns (token, principal snapshot)."""
    user = AccountStoreDB.verify(username, password)
    if user is None:
        raise AuthenticationRequired("invalid_credentials", "Invalid username or password")
    snapshot = {f: user.get(f) for f in PRINCIPAL_FIELDS}
    token = get_session_store().issue(snapshot)
    return token, snapshot


@auth_bp.route("/api/auth/login", methods=["POST"])
def login_route():
    data = request_data()
    username, password = data.get("username"), data.get("password")
    if not isinstance(username, str) or not isinstance(password, str):
        username = password = ""
    if not username or not password:
        raise ValidationFailed("missing_fields", "username and password are required")

    try:
        token, user = login(username, password)
    except AuthenticationRequired:
        log_event("login_failed", None, f"username={username}")
        raise
    log_event("login_success", user["id"])
    return jsonify({"token": token, "user": user})


@auth_bp.route("/api/auth/logout", methods=["POST"])
@login_required
def logout():
    revoked = get_session_store().revoke_all_for(current_user.id)
    log_event("logout", current_user.id, f"sessions={revoked}")
    return jsonify({"ok": True})


@auth_bp.route("/api/auth/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
