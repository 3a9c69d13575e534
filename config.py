"""
Application configuration: environment-aware settings.

All environment variables are documented here.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

BASE_DIR = Path(__file__).parent


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # Database: SQLite file path
    DATABASE = os.environ.get("DATABASE_PATH", str(BASE_DIR / "data.db"))

    # Uploads (materials, homework files, daily lessons, submissions)
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR", str(BASE_DIR / "uploads"))
    MAX_CONTENT_LENGTH = 32 * 1024 * 1024  # 32 MB

    # Session tokens: "memory" (single instance) or "redis" (shared)
    SESSION_BACKEND = os.environ.get("SESSION_BACKEND", "memory")
    SESSION_TTL = int(os.environ.get("SESSION_TTL", "0"))  # seconds, 0 = no expiry
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Seeded when no admin account exists
    DEFAULT_ADMIN_USERNAME = os.environ.get("DEFAULT_ADMIN_USERNAME", "admin")
    DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")

    # AI quiz generation
    ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    AI_QUIZ_MODEL_CLAUDE = os.environ.get("AI_QUIZ_MODEL_CLAUDE", "claude-sonnet-4-5-20250929")
    AI_QUIZ_MODEL_GEMINI = os.environ.get("AI_QUIZ_MODEL_GEMINI", "gemini-2.0-flash")
    AI_QUIZ_MAX_QUESTIONS = 20

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.DEFAULT_ADMIN_PASSWORD == "admin123":
            errors.append("DEFAULT_ADMIN_PASSWORD must be changed in production.")

        if cls.SESSION_BACKEND == "redis" and not cls.REDIS_URL:
            errors.append("SESSION_BACKEND=redis requires REDIS_URL.")

        if not cls.ANTHROPIC_API_KEY and not cls.GOOGLE_API_KEY:
            warnings.warn("No AI provider key set; AI quiz generation will be unavailable.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    SESSION_BACKEND = "memory"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
