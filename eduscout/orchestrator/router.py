"""Orchestrator — validates requests and dispatches them to the right component.

Responsibilities:
  - Parse request bodies (camelCase and snake_case keys are both accepted)
  - Validate input (empty query, unknown level or content type, oversized text)
  - Dispatch to the search pipeline, availability checker, scorer or chat
"""

import logging
from typing import Any

from eduscout.exceptions import InvalidRequestError
from eduscout.orchestrator.schemas import (
    LEARNING_LEVELS,
    AvailabilityResult,
    ChatInput,
    ChatReply,
    RelevanceAssessment,
    SearchInput,
    SearchResultSet,
    SummaryInput,
)
from eduscout.pipelines.availability import AvailabilityChecker
from eduscout.pipelines.search import SearchPipeline
from eduscout.pipelines.search.relevance_scorer import RelevanceScorer
from eduscout.services.chat import ChatAssistant

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("video", "blog", "website")
MAX_QUERY_LENGTH = 200


class OrchestratorRouter:
    """Main dispatcher — one method per HTTP endpoint."""

    def __init__(
        self,
        pipeline: SearchPipeline | None = None,
        availability: AvailabilityChecker | None = None,
        scorer: RelevanceScorer | None = None,
        chat: ChatAssistant | None = None,
    ):
        self.scorer = scorer or RelevanceScorer()
        self.pipeline = pipeline or SearchPipeline(scorer=self.scorer)
        self.availability = availability or AvailabilityChecker()
        self.chat_assistant = chat or ChatAssistant()

    async def search(self, data: dict[str, Any]) -> tuple[SearchResultSet, bool]:
        inp = _parse_search_input(data)
        logger.info("Orchestrator | search | level=%s", inp.learning_level)
        return await self.pipeline.run(inp)

    async def check_availability(self, data: dict[str, Any]) -> AvailabilityResult:
        query = _require_query(data.get("query"))
        logger.info("Orchestrator | availability")
        return await self.availability.check(query)

    async def generate_summary(self, data: dict[str, Any]) -> RelevanceAssessment:
        inp = _parse_summary_input(data)
        logger.info("Orchestrator | summary | type=%s", inp.content_type)
        return await self.scorer.score(
            title=inp.title,
            description=inp.description,
            query=inp.query,
            content_type=inp.content_type,
            duration=inp.duration,
            learning_level=inp.learning_level,
        )

    async def chat(self, data: dict[str, Any]) -> ChatReply:
        inp = _parse_chat_input(data)
        logger.info("Orchestrator | chat")
        text = await self.chat_assistant.reply(inp.message, inp.context)
        return ChatReply(response=text)


# ═══════════════ INPUT PARSING ═══════════════

def _require_query(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError("Query is required")
    query = value.strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise InvalidRequestError(f"Query must be at most {MAX_QUERY_LENGTH} characters")
    return query


def _parse_level(value: Any, default: str | None = "beginner") -> str | None:
    if value in (None, ""):
        return default
    level = str(value).strip().lower()
    if level not in LEARNING_LEVELS:
        raise InvalidRequestError(
            f"learningLevel must be one of: {', '.join(LEARNING_LEVELS)}"
        )
    return level


def _parse_search_input(data: dict) -> SearchInput:
    user_id = data.get("userId", data.get("user_id"))
    return SearchInput(
        query=_require_query(data.get("query")),
        learning_level=_parse_level(data.get("learningLevel", data.get("learning_level"))),
        user_id=str(user_id) if user_id else None,
    )


def _parse_summary_input(data: dict) -> SummaryInput:
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise InvalidRequestError("Title is required")

    content_type = data.get("contentType", data.get("content_type", "video"))
    if content_type not in CONTENT_TYPES:
        raise InvalidRequestError(f"contentType must be one of: {', '.join(CONTENT_TYPES)}")

    description = data.get("description") or ""
    duration = data.get("duration")
    return SummaryInput(
        title=title.strip(),
        description=str(description),
        query=_require_query(data.get("query")),
        content_type=content_type,
        duration=str(duration) if duration else None,
        learning_level=_parse_level(
            data.get("learningLevel", data.get("learning_level")), default=None,
        ),
    )


def _parse_chat_input(data: dict) -> ChatInput:
    message = data.get("message")
    if not isinstance(message, str):
        raise InvalidRequestError("Message is required")
    context = data.get("context") or ""
    if not isinstance(context, str):
        raise InvalidRequestError("Context must be a string")
    return ChatInput(message=message, context=context)
