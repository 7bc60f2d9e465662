"""Pydantic models for API input/output — shared across all pipelines.

Split into: request inputs, content items, and final API responses.
Field names of the response models follow the wire format the frontend reads
(camelCase), matching the payload stored in the search cache.
"""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LearningLevel = Literal["beginner", "intermediate", "advanced"]
ContentType = Literal["video", "blog", "website"]

LEARNING_LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")


# ═══════════════ PIPELINE INPUTS ═══════════════

class SearchInput(BaseModel):
    query: str
    learning_level: LearningLevel = "beginner"
    user_id: str | None = None


class SummaryInput(BaseModel):
    title: str
    description: str = ""
    query: str
    content_type: ContentType = "video"
    duration: str | None = None
    learning_level: LearningLevel | None = None


class ChatInput(BaseModel):
    message: str
    context: str = ""


# ═══════════════ CONTENT ITEMS ═══════════════

class ContentCandidate(BaseModel):
    """A content item as produced by a source fetcher, before scoring."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    author: str = ""
    source: str = ""
    content_type: ContentType
    description: str = ""
    duration: str | None = None
    duration_seconds: int | None = None
    publish_date: str | None = None
    thumbnail_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RelevanceAssessment(BaseModel):
    """Structured result of the relevance scorer."""

    summary: str = ""
    isEducational: bool = True
    relevanceScore: int
    learningTopics: list[str] = Field(default_factory=list)

    @field_validator("relevanceScore", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            try:
                value = float(value)
            except ValueError:
                return value
        if isinstance(value, bool):
            raise ValueError("relevanceScore must be a number")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("relevanceScore must be finite")
        if isinstance(value, (int, float)):
            return max(0, min(100, round(value)))
        return value

    @field_validator("learningTopics", mode="before")
    @classmethod
    def _coerce_topics(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(v) for v in value if v not in (None, "")]
        return value


class ScoredContent(ContentCandidate):
    """ContentCandidate decorated with a relevance assessment."""

    summary: str = ""
    isEducational: bool = True
    relevanceScore: int = Field(ge=0, le=100)
    learningTopics: list[str] = Field(default_factory=list)

    @classmethod
    def from_candidate(
        cls, candidate: ContentCandidate, assessment: RelevanceAssessment,
    ) -> ScoredContent:
        return cls(**candidate.model_dump(), **assessment.model_dump())


# ═══════════════ FINAL API RESPONSES ═══════════════

class SearchResultSet(BaseModel):
    """Response of the search pipeline — cached verbatim."""
    videos: list[ScoredContent] = Field(default_factory=list)
    websites: list[ScoredContent] = Field(default_factory=list)
    blogs: list[ScoredContent] = Field(default_factory=list)
    totalResults: int = 0
    learningLevel: LearningLevel = "beginner"


class AvailabilityResult(BaseModel):
    needsLevelSelection: bool = False
    contentAvailability: dict[str, int] = Field(default_factory=dict)
    defaultLevel: LearningLevel = "beginner"


class ChatReply(BaseModel):
    response: str = ""
