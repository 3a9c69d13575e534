"""Quiz Generation Agent: multiple-choice quizzes from an LLM.

Asks the configured provider (Claude preferred, Gemini as fallback) for a
quiz as JSON, then validates it. Questions that break the question rules
are dropped; output that is not JSON or has no usable questions is an
error, never an empty quiz.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from dotenv import load_dotenv

from agents.base import GeneratedQuestion, GeneratedQuiz
from ai_resilience import ProviderUnavailable, resilient_llm_call
from errors import ExternalServiceFailure, ValidationFailed

load_dotenv()

logger = logging.getLogger(__name__)

MAX_TITLE = 200
MAX_TEXT = 1000
MAX_OPTIONS = 10

SYSTEM_PROMPT = (
    "You write school multiple-choice quizzes. "
    "Return ONLY valid JSON. Do not include any extra text."
)

QUIZ_PROMPT = """Create a multiple-choice test for:
- Subject: {subject}
- Grade: {grade}
- Group: {group}
- Topic / skills: {topic}
- Number of questions: {count}

Requirements:
- ONLY valid JSON following this schema:
{{
  "title": "string",
  "questions": [
    {{
      "text": "string",
      "options": ["string", "string", "string", "string"],
      "correctIndex": 0
    }}
  ]
}}
- Language suited to the grade. Plausible distractors. Exactly one correct answer."""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def default_title(subject: str, grade: str) -> str:
    return f"Quiz AI — {subject} {grade}"


def _extract_json(raw: str) -> Any:
    text = _FENCE_RE.sub("", (raw or "").strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ExternalServiceFailure("invalid_ai_json", "Provider output is not JSON")
    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ExternalServiceFailure("invalid_ai_json", f"Provider output is not JSON: {e}") from e


def _clean_question(item: Any) -> GeneratedQuestion | None:
    from db_stores import validate_question

    if not isinstance(item, dict):
        return None
    text = str(item.get("text") or "")[:MAX_TEXT]
    options = item.get("options")
    if isinstance(options, list):
        options = options[:MAX_OPTIONS]
    correct = item.get("correctIndex", item.get("correct_index"))
    try:
        text, options, correct = validate_question(text, options, correct)
    except ValidationFailed:
        return None
    return GeneratedQuestion(text=text, options=options, correct_index=correct)


def parse_quiz(raw: str, subject: str, grade: str) -> GeneratedQuiz:
    """Parse and validate provider output.

    Raises:
        ExternalServiceFailure: ``invalid_ai_json`` when the output is not a
            JSON object, ``ai_empty`` when no valid question remains.
    """
    data = _extract_json(raw)
    if not isinstance(data, dict):
        raise ExternalServiceFailure("invalid_ai_json", "Provider output is not a JSON object")
    items = data.get("questions")
    if not isinstance(items, list) or not items:
        raise ExternalServiceFailure("ai_empty", "Provider returned no questions")

    questions = [q for q in (_clean_question(i) for i in items) if q is not None]
    if not questions:
        raise ExternalServiceFailure("ai_empty", "No generated question passed validation")

    title = str(data.get("title") or "").strip() or default_title(subject, grade)
    return GeneratedQuiz(
        title=title[:MAX_TITLE],
        questions=questions,
        dropped=len(items) - len(questions),
    )


class QuizGenAgent:
    """Generates multiple-choice quizzes through one configured provider."""

    AGENT_NAME = "quiz_gen_agent"

    def __init__(self, provider: str, model: str, api_key: str) -> None:
        self.provider = provider
        self.model = model
        self.api_key = api_key

    @classmethod
    def from_config(cls, config) -> QuizGenAgent | None:
        """Pick the provider from configured keys. None when no key is set."""
        anthropic_key = config.get("ANTHROPIC_API_KEY")
        if anthropic_key:
            return cls("claude", config.get("AI_QUIZ_MODEL_CLAUDE", "claude-sonnet-4-5-20250929"), anthropic_key)
        google_key = config.get("GOOGLE_API_KEY")
        if google_key:
            return cls("gemini", config.get("AI_QUIZ_MODEL_GEMINI", "gemini-2.0-flash"), google_key)
        return None

    def generate(self, subject: str, grade: str, group_name: str | None = None,
                 topic: str | None = None, count: int = 5) -> GeneratedQuiz:
        prompt = QUIZ_PROMPT.format(
            subject=subject,
            grade=grade,
            group=group_name or "-",
            topic=topic or "standard curriculum",
            count=count,
        )
        try:
            raw, metrics = resilient_llm_call(
                self.provider, self.model, prompt, system=SYSTEM_PROMPT, api_key=self.api_key,
            )
        except ProviderUnavailable as e:
            raise ExternalServiceFailure("ai_unavailable", str(e)) from e
        except Exception as e:
            logger.warning("Quiz generation via %s failed: %s", self.provider, e)
            raise ExternalServiceFailure("ai_quiz_failed", str(e)) from e

        quiz = parse_quiz(raw, subject, grade)
        quiz.metadata = metrics
        if quiz.dropped:
            logger.info("Dropped %d invalid generated question(s)", quiz.dropped)
        return quiz
