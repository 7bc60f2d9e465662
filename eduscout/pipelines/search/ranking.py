"""Filtering and ordering rules applied to scored content.

Thresholds and duration cutoffs come from settings so a deployment can tune
them without code changes.
"""

from eduscout.config import settings
from eduscout.orchestrator.schemas import ScoredContent


def min_relevance(level: str, content_type: str = "video") -> int:
    """Lowest relevance score kept for the given level and content type."""
    if content_type != "video":
        return settings.min_relevance_catalog
    return {
        "beginner": settings.min_relevance_beginner,
        "intermediate": settings.min_relevance_intermediate,
        "advanced": settings.min_relevance_advanced,
    }[level]


def duration_window(level: str) -> tuple[int, int]:
    """(minimum, maximum) video length in seconds for the given level."""
    minimum = {
        "beginner": settings.min_duration_beginner,
        "intermediate": settings.min_duration_intermediate,
        "advanced": settings.min_duration_advanced,
    }[level]
    return minimum, settings.max_video_duration


def in_duration_window(seconds: int | None, level: str) -> bool:
    if seconds is None:
        return False
    low, high = duration_window(level)
    return low <= seconds <= high


def passes_filter(item: ScoredContent, level: str) -> bool:
    if item.isEducational is False:
        return False
    if item.relevanceScore < min_relevance(level, item.content_type):
        return False
    if item.content_type == "video" and not in_duration_window(item.duration_seconds, level):
        return False
    return True


def sort_key_score(item: ScoredContent) -> int:
    """Relevance score plus the sweet-spot bonus for 5-minute to 1-hour videos.

    Only used for ordering; filtering always looks at the raw score.
    """
    score = item.relevanceScore
    seconds = item.duration_seconds
    if item.content_type == "video" and seconds is not None and 300 <= seconds <= 3600:
        score += settings.sweet_spot_bonus
    return score


def sort_by_relevance(items: list[ScoredContent]) -> list[ScoredContent]:
    """Descending by adjusted score; ties keep their encounter order."""
    return sorted(items, key=sort_key_score, reverse=True)


def filter_and_sort(items: list[ScoredContent], level: str) -> list[ScoredContent]:
    return sort_by_relevance([item for item in items if passes_filter(item, level)])
