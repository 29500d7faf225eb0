"""Retrieval-side models: vector records, query results, feedback."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IndexRecord(BaseModel):
    """One vector written to the store: id, embedding, text and flat metadata."""

    model_config = ConfigDict(frozen=True)

    id: str
    embedding: list[float]
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """A chunk returned from similarity search with its relevance score.

    ``score`` is a similarity in [0, 1] (1 = identical direction), derived
    from the store's cosine distance.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(ge=0.0, le=1.0)


class TaskType(str, Enum):
    """Closed set of task identifiers that may select a prompt template."""

    FEATURE_IMPLEMENTATION = "feature_implementation"
    BUG_FIXING = "bug_fixing"
    CODE_REVIEW = "code_review"
    DOCUMENTATION = "documentation"
    TESTING = "testing"

    @classmethod
    def parse(cls, value: TaskType | str | None) -> TaskType | None:
        """Return the matching member, or ``None`` for unknown identifiers."""
        if value is None or isinstance(value, TaskType):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class FeedbackRecord(BaseModel):
    """Relevance feedback on one retrieval, as logged."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    retrieved_sources: list[str] = Field(default_factory=list)
    relevance_scores: list[int] = Field(default_factory=list)
    feedback: str | None = None
    timestamp: str
