"""Content kind descriptors.

Materials, homeworks, quizzes and daily lessons share one create / list /
delete contract. A ContentKind carries what differs between them: table,
required and optional fields, upload policy, ordering and visibility rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from errors import NotFound, ValidationFailed
from visibility import (
    DAILY_LESSON_RULE,
    HOMEWORK_RULE,
    MATERIAL_RULE,
    QUIZ_RULE,
    VisibilityRule,
)

FILE_REQUIRED = "required"
FILE_OPTIONAL = "optional"
FILE_NONE = "none"


def clean(value: Any) -> str | None:
    """Strip strings; empty or missing values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ContentKind:
    name: str
    slug: str
    table: str
    required: tuple[str, ...]
    optional: tuple[str, ...]
    file_policy: str
    rule: VisibilityRule
    date_column: str | None = None

    @property
    def columns(self) -> tuple[str, ...]:
        return self.required + self.optional

    def order_by(self, alias: str = "") -> str:
        p = f"{alias}." if alias else ""
        if self.date_column:
            return f"COALESCE({p}{self.date_column}, {p}created_at) DESC, {p}id DESC"
        return f"{p}created_at DESC, {p}id DESC"

    def clean_fields(self, data: dict[str, Any]) -> dict[str, str | None]:
        return {col: clean(data.get(col)) for col in self.columns}

    def validate(self, fields: dict[str, str | None], has_file: bool) -> None:
        missing = [col for col in self.required if not fields.get(col)]
        if self.file_policy == FILE_REQUIRED and not has_file:
            missing.append("file")
        if missing:
            raise ValidationFailed("missing_fields", "Missing required fields: " + ", ".join(missing))


MATERIAL = ContentKind(
    name="material",
    slug="materials",
    table="materials",
    required=("subject", "grade", "title"),
    optional=("group_name", "description"),
    file_policy=FILE_REQUIRED,
    rule=MATERIAL_RULE,
)

HOMEWORK = ContentKind(
    name="homework",
    slug="homeworks",
    table="homeworks",
    required=("subject", "grade", "group_name", "title"),
    optional=("description", "due_date"),
    file_policy=FILE_OPTIONAL,
    rule=HOMEWORK_RULE,
)

QUIZ = ContentKind(
    name="quiz",
    slug="quizzes",
    table="quizzes",
    required=("subject", "grade", "title"),
    optional=("group_name",),
    file_policy=FILE_NONE,
    rule=QUIZ_RULE,
)

DAILY_LESSON = ContentKind(
    name="daily_lesson",
    slug="daily-lessons",
    table="daily_lessons",
    required=("subject", "grade", "group_name", "title"),
    optional=("description", "date"),
    file_policy=FILE_REQUIRED,
    rule=DAILY_LESSON_RULE,
    date_column="date",
)

KINDS: dict[str, ContentKind] = {k.slug: k for k in (MATERIAL, HOMEWORK, QUIZ, DAILY_LESSON)}


def get_kind(slug: str) -> ContentKind:
    kind = KINDS.get(slug)
    if kind is None:
        raise NotFound("unknown_content_kind", f"No content kind named {slug!r}")
    return kind
