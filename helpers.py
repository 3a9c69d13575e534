"""
Shared helpers used across blueprints.

Role checks, request body access and upload file handling.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

from flask import current_app, request
from flask_login import current_user
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from errors import AuthenticationRequired, AuthorizationDenied

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "/uploads/"


def current_user_id() -> int:
    """Return the current authenticated user's ID."""
    if not current_user.is_authenticated:
        raise AuthenticationRequired()
    return current_user.id


def admin_required(f: Callable) -> Callable:
    """Decorator that requires an authenticated admin."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            raise AuthenticationRequired()
        if current_user.role != "admin":
            raise AuthorizationDenied()
        return f(*args, **kwargs)
    return decorated


def request_data() -> dict[str, Any]:
    """JSON body if present, else form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def uploaded_file(field: str = "file") -> FileStorage | None:
    f = request.files.get(field)
    if f is None or not f.filename:
        return None
    return f


def _upload_dir() -> Path:
    path = Path(current_app.config["UPLOAD_DIR"])
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_upload(file: FileStorage) -> str:
    """Store an upload under a collision-free name and return its public reference."""
    original = secure_filename(file.filename or "") or "file"
    name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}-{original}"
    file.save(_upload_dir() / name)
    return UPLOAD_PREFIX + name


def remove_upload(file_ref: str | None) -> None:
    """Best-effort delete of a stored upload. Failures are logged, never raised."""
    if not file_ref or not file_ref.startswith(UPLOAD_PREFIX):
        return
    root = _upload_dir().resolve()
    target = (root / file_ref[len(UPLOAD_PREFIX):]).resolve()
    if root not in target.parents:
        logger.warning("Refusing to remove file outside upload dir: %s", file_ref)
        return
    try:
        target.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove upload %s: %s", file_ref, e)


def remove_uploads(file_refs: list[str]) -> None:
    for ref in file_refs:
        remove_upload(ref)
