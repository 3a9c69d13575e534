"""
Error taxonomy for the tutoring API.

Every failure leaves the API as ``{"error": <kind>, "detail": <text>}`` with a
stable machine-readable kind and the HTTP status of its class.
"""

from __future__ import annotations

import logging
import sqlite3

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 500
    default_kind = "error"

    def __init__(self, kind: str | None = None, detail: str = "") -> None:
        self.kind = kind or self.default_kind
        self.detail = detail or self.kind.replace("_", " ")
        super().__init__(f"{self.kind}: {self.detail}")

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class AuthenticationRequired(AppError):
    status_code = 401
    default_kind = "not_authenticated"


class AuthorizationDenied(AppError):
    status_code = 403
    default_kind = "admin_only"


class ValidationFailed(AppError):
    status_code = 400
    default_kind = "missing_fields"


class NotFound(AppError):
    status_code = 404
    default_kind = "not_found"


class Conflict(AppError):
    status_code = 409
    default_kind = "conflict"


class ExternalServiceFailure(AppError):
    status_code = 502
    default_kind = "external_service_failure"


class StorageFailure(AppError):
    status_code = 500
    default_kind = "storage_failure"


def register_error_handlers(app: Flask) -> None:
    """Render AppError and stray HTTP/storage errors as JSON."""

    @app.errorhandler(AppError)
    def _handle_app_error(err: AppError):
        if err.status_code >= 500:
            logger.error("%s: %s", err.kind, err.detail)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(sqlite3.Error)
    def _handle_storage_error(err: sqlite3.Error):
        logger.error("Unhandled storage error: %s", err)
        wrapped = StorageFailure(detail=str(err))
        return jsonify(wrapped.to_dict()), wrapped.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(err: HTTPException):
        kind = (err.name or "error").lower().replace(" ", "_")
        return jsonify({"error": kind, "detail": err.description or kind}), err.code or 500
