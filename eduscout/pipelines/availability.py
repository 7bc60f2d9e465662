"""Content availability check — decides whether the learner must pick a level.

Counts YouTube hits for each level-enhanced query; every level is credited
with the catalog blog/website entries that are always available.
"""

import asyncio
import logging

from eduscout.config import settings
from eduscout.integrations.youtube import YouTubeClient
from eduscout.orchestrator.schemas import LEARNING_LEVELS, AvailabilityResult
from eduscout.pipelines.search.query_enhancer import enhance_query

logger = logging.getLogger(__name__)

CATALOG_ITEMS_PER_LEVEL = 2
LEVEL_SELECTION_MIN_TOTAL = 6
LEVEL_SPREAD = 2


def needs_level_selection(counts: dict[str, int]) -> bool:
    values = list(counts.values())
    if not values:
        return False
    has_varied = (
        (any(v > 0 for v in values) and any(v == 0 for v in values))
        or max(values) - min(values) > LEVEL_SPREAD
    )
    return sum(values) > LEVEL_SELECTION_MIN_TOTAL and has_varied


def default_level(counts: dict[str, int]) -> str:
    for level in LEARNING_LEVELS:
        if counts.get(level, 0) > 0:
            return level
    return LEARNING_LEVELS[-1]


class AvailabilityChecker:
    def __init__(self, youtube: YouTubeClient | None = None):
        self.youtube = youtube or YouTubeClient()

    async def check(self, topic: str) -> AvailabilityResult:
        topic = topic.strip()
        results = await asyncio.gather(
            *(
                self.youtube.search(
                    enhance_query(topic, level),
                    max_results=settings.availability_max_results,
                    video_duration=None,
                )
                for level in LEARNING_LEVELS
            ),
            return_exceptions=True,
        )

        counts: dict[str, int] = {}
        for level, result in zip(LEARNING_LEVELS, results):
            if isinstance(result, BaseException):
                logger.warning("Availability | level=%s failed | %s", level, str(result)[:200])
                found = 0
            else:
                found = len(result)
            counts[level] = found + CATALOG_ITEMS_PER_LEVEL

        result = AvailabilityResult(
            needsLevelSelection=needs_level_selection(counts),
            contentAvailability=counts,
            defaultLevel=default_level(counts),
        )
        logger.info(
            "Availability | topic=%s | counts=%s | needs_selection=%s",
            topic[:80], counts, result.needsLevelSelection,
        )
        return result
