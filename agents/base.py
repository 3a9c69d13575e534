"""Base types shared by the AI agents."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GeneratedQuestion:
    """One multiple-choice question as returned by a provider, already validated."""

    text: str
    options: list[str]
    correct_index: int


@dataclass
class GeneratedQuiz:
    """Parsed provider output ready to be stored."""

    title: str
    questions: list[GeneratedQuestion] = field(default_factory=list)
    dropped: int = 0  # questions rejected during validation
    metadata: dict = field(default_factory=dict)  # provider call metrics
