"""Enrollment-scoped content visibility.

A student sees a content row when at least one of their enrollments matches
it. What "matches" means depends on the content kind:

    SubjectGradeRule   subject + grade; the row's group is ignored (materials)
    OptionalGroupRule  subject + grade, and the row's group is NULL or equal
                       to the enrollment's group (homeworks, quizzes)
    ExactGroupRule     subject + grade + group, SQL equality, so a NULL group
                       on either side never matches (daily lessons)

Each rule renders the predicate as SQL for the resolver queries. ``matches``
evaluates the same predicate on plain mappings, for callers that already hold
the rows; both forms must agree row for row.

Queries use ``WHERE EXISTS`` against the student's enrollments rather than a
join, so a row matched by several enrollments is still returned once.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from database import get_db


class VisibilityRule:
    """Subject + grade matching; subclasses narrow by group."""

    name = "subject_grade"

    def sql_predicate(self, item: str = "c", enrollment: str = "e") -> str:
        return f"{enrollment}.subject = {item}.subject AND {enrollment}.grade = {item}.grade"

    def group_matches(self, item_group: str | None, enrollment_group: str | None) -> bool:
        return True

    def matches(self, item: Mapping[str, Any], enrollment: Mapping[str, Any]) -> bool:
        # NULL never equals anything in SQL; mirror that here.
        if item.get("subject") is None or item.get("grade") is None:
            return False
        if item["subject"] != enrollment.get("subject") or item["grade"] != enrollment.get("grade"):
            return False
        return self.group_matches(item.get("group_name"), enrollment.get("group_name"))

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class SubjectGradeRule(VisibilityRule):
    name = "subject_grade"


class OptionalGroupRule(VisibilityRule):
    name = "optional_group"

    def sql_predicate(self, item: str = "c", enrollment: str = "e") -> str:
        return (
            super().sql_predicate(item, enrollment)
            + f" AND ({item}.group_name IS NULL OR {item}.group_name = {enrollment}.group_name)"
        )

    def group_matches(self, item_group, enrollment_group) -> bool:
        if item_group is None:
            return True
        return enrollment_group is not None and item_group == enrollment_group


class ExactGroupRule(VisibilityRule):
    name = "exact_group"

    def sql_predicate(self, item: str = "c", enrollment: str = "e") -> str:
        return super().sql_predicate(item, enrollment) + f" AND {item}.group_name = {enrollment}.group_name"

    def group_matches(self, item_group, enrollment_group) -> bool:
        return item_group is not None and enrollment_group is not None and item_group == enrollment_group


MATERIAL_RULE = SubjectGradeRule()
HOMEWORK_RULE = OptionalGroupRule()
QUIZ_RULE = OptionalGroupRule()
DAILY_LESSON_RULE = ExactGroupRule()


def list_visible(kind, user_id: int) -> list[dict]:
    """Rows of ``kind`` visible to ``user_id``, newest first."""
    db = get_db()
    rows = db.execute(
        f"SELECT c.* FROM {kind.table} c "
        f"WHERE EXISTS (SELECT 1 FROM enrollments e WHERE e.user_id = ? AND {kind.rule.sql_predicate()}) "
        f"ORDER BY {kind.order_by('c')}",
        (user_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def is_visible(kind, item_id: int, user_id: int) -> bool:
    """True if the single row ``item_id`` of ``kind`` is visible to ``user_id``."""
    db = get_db()
    row = db.execute(
        f"SELECT 1 FROM {kind.table} c WHERE c.id = ? AND EXISTS "
        f"(SELECT 1 FROM enrollments e WHERE e.user_id = ? AND {kind.rule.sql_predicate()})",
        (item_id, user_id),
    ).fetchone()
    return row is not None
