"""Relevance Scorer — LLM assessment of a content item's educational value.

Fails soft: any upstream error, timeout or unusable answer produces a
fallback assessment, so the pipeline always has a score to filter and sort on.
"""

import asyncio
import logging

from pydantic import ValidationError

from eduscout.config import settings
from eduscout.exceptions import MalformedUpstreamResponseError
from eduscout.orchestrator.schemas import RelevanceAssessment
from eduscout.services.llm_client import call_llm, extract_json, load_prompt
from eduscout.utils.duration import parse_display_duration

logger = logging.getLogger(__name__)

SHORT_VIDEO_SECONDS = 120
GOOD_DURATION_RANGE = (300, 3600)

UPSTREAM_FALLBACK_SCORE = 50
PARSE_FALLBACK_SCORE = 75

SCORING_TEMPERATURE = 0.3
SCORING_MAX_TOKENS = 300


def fallback_assessment(title: str, query: str, score: int) -> RelevanceAssessment:
    return RelevanceAssessment(
        summary=f"Learn about {title} - educational content covering key concepts "
                f"and practical applications.",
        isEducational=True,
        relevanceScore=score,
        learningTopics=[query],
    )


def duration_note(content_type: str, duration: str | None) -> str:
    """Quality caveat appended after the duration line for videos."""
    if content_type != "video" or not duration:
        return ""
    seconds = parse_display_duration(duration)
    if 0 < seconds < SHORT_VIDEO_SECONDS:
        return " (Note: This is a very short video, consider if it provides sufficient educational depth)"
    low, high = GOOD_DURATION_RANGE
    if low <= seconds <= high:
        return " (Good duration for educational content)"
    return ""


def build_user_message(
    title: str,
    description: str,
    query: str,
    content_type: str,
    duration: str | None = None,
    learning_level: str | None = None,
) -> str:
    lines = [
        f'Analyze this {content_type} content for educational value and relevance '
        f'to the search query "{query}".',
        "",
        f"Title: {title}",
        f"Description: {description[:1500]}",
    ]
    if duration:
        lines.append(f"Duration: {duration}{duration_note(content_type, duration)}")
    if learning_level:
        lines.append(f"Learner level: {learning_level}")
    return "\n".join(lines)


class RelevanceScorer:
    """Scores one content item per call; safe to run many calls concurrently."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.external_call_timeout_seconds
        self._system_prompt: str | None = None

    @property
    def system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = load_prompt("content_scorer")
        return self._system_prompt

    async def score(
        self,
        title: str,
        description: str,
        query: str,
        content_type: str,
        duration: str | None = None,
        learning_level: str | None = None,
    ) -> RelevanceAssessment:
        user_message = build_user_message(
            title, description, query, content_type, duration, learning_level,
        )
        try:
            text = await asyncio.wait_for(
                call_llm(
                    self.system_prompt,
                    user_message,
                    max_tokens=SCORING_MAX_TOKENS,
                    temperature=SCORING_TEMPERATURE,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("Scorer upstream failed, using fallback | title=%s | %s", title[:60], str(e)[:200])
            return fallback_assessment(title, query, UPSTREAM_FALLBACK_SCORE)

        try:
            assessment = parse_assessment(text)
        except MalformedUpstreamResponseError as e:
            logger.warning("Scorer parse failed, using fallback | title=%s | %s", title[:60], e)
            return fallback_assessment(title, query, PARSE_FALLBACK_SCORE)

        logger.info(
            "Scored | title=%s | score=%d | educational=%s",
            title[:60], assessment.relevanceScore, assessment.isEducational,
        )
        return assessment


def parse_assessment(text: str) -> RelevanceAssessment:
    """Validate the LLM answer against the assessment schema."""
    data = extract_json(text)
    if data is None:
        raise MalformedUpstreamResponseError("no JSON object in LLM response")
    if "relevanceScore" not in data:
        raise MalformedUpstreamResponseError("relevanceScore missing")
    try:
        return RelevanceAssessment.model_validate(data)
    except ValidationError as e:
        raise MalformedUpstreamResponseError(f"invalid assessment: {e.error_count()} errors") from e
