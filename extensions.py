"""
Capabilities resolved once at start-up.

The quiz generator is present only when an AI provider key is configured;
routes that need it look it up here instead of probing the environment.
"""

from __future__ import annotations

import logging

from flask import current_app

from agents.quiz_gen_agent import QuizGenAgent
from errors import ExternalServiceFailure

logger = logging.getLogger(__name__)


def init_quiz_generator(app) -> None:
    """Register app.extensions["quiz_generator"] (None when unconfigured)."""
    generator = QuizGenAgent.from_config(app.config)
    app.extensions["quiz_generator"] = generator
    if generator is None:
        logger.warning("No AI provider key configured; POST /api/admin/ai-quiz is disabled.")
    else:
        logger.info("Quiz generator: %s (%s)", generator.provider, generator.model)


def get_quiz_generator():
    generator = current_app.extensions.get("quiz_generator")
    if generator is None:
        raise ExternalServiceFailure("ai_not_configured", "No AI provider is configured")
    return generator
