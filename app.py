"""
Tutoring Platform: Flask JSON API

Students, subject enrollments, materials, homeworks, quizzes, daily lessons,
weekly parent reports and AI-generated quizzes.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, send_from_directory

load_dotenv()

import database  # noqa: E402
from auth import auth_bp, login_manager  # noqa: E402
from blueprints import register_blueprints  # noqa: E402
from errors import register_error_handlers  # noqa: E402
from extensions import init_quiz_generator  # noqa: E402
from logging_config import init_logging  # noqa: E402
from session_store import init_sessions  # noqa: E402


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config["SECRET_KEY"]
    Path(app.config["UPLOAD_DIR"]).mkdir(parents=True, exist_ok=True)

    # Structured logging
    init_logging(app)

    # Database teardown + first-request bootstrap
    database.init_app(app)

    # Bearer-token sessions
    init_sessions(app)
    login_manager.init_app(app)

    register_error_handlers(app)

    app.register_blueprint(auth_bp)
    register_blueprints(app)

    # AI quiz generator (absent when no provider key is configured)
    init_quiz_generator(app)

    @app.route("/uploads/<path:filename>")
    def uploaded(filename: str):
        return send_from_directory(app.config["UPLOAD_DIR"], filename)

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=int(os.environ.get("PORT", "3000")))
