"""Video source fetcher — YouTube search, duration window, popularity cap.

Capping the list here bounds how many LLM scoring calls one search makes.
"""

import logging

from eduscout.config import settings
from eduscout.integrations.youtube import YouTubeClient
from eduscout.orchestrator.schemas import ContentCandidate
from eduscout.pipelines.search.ranking import in_duration_window
from eduscout.utils.duration import format_duration, parse_iso_duration

logger = logging.getLogger(__name__)


class VideoFetcher:
    """Fetch level-appropriate video candidates for a topic."""

    content_type = "video"

    def __init__(self, youtube: YouTubeClient | None = None):
        self.youtube = youtube or YouTubeClient()

    async def fetch(self, enhanced_query: str, topic: str, level: str) -> list[ContentCandidate]:
        try:
            return await self._fetch(enhanced_query, level)
        except Exception as e:
            logger.warning("VideoFetcher failed | topic=%s | %s", topic[:80], str(e)[:200])
            return []

    async def _fetch(self, enhanced_query: str, level: str) -> list[ContentCandidate]:
        results = await self.youtube.search(
            enhanced_query,
            max_results=settings.youtube_max_results,
            order="relevance",
            video_duration=settings.youtube_duration_filter,
        )
        if not results:
            return []

        details = await self.youtube.video_details([r["video_id"] for r in results])

        ranked: list[tuple[int, ContentCandidate]] = []
        dropped = 0
        for result in results:
            info = details.get(result["video_id"], {})
            seconds = parse_iso_duration(info.get("duration"))
            if not in_duration_window(seconds, level):
                dropped += 1
                continue
            views = info.get("view_count", 0)
            likes = info.get("like_count", 0)
            ranked.append((views + likes, self._to_candidate(result, info, seconds, level)))

        ranked.sort(key=lambda pair: pair[0], reverse=True)
        candidates = [candidate for _, candidate in ranked[:settings.video_candidate_cap]]
        logger.info(
            "VideoFetcher | level=%s | found=%d | out_of_window=%d | kept=%d",
            level, len(results), dropped, len(candidates),
        )
        return candidates

    def _to_candidate(self, result: dict, info: dict, seconds: int, level: str) -> ContentCandidate:
        return ContentCandidate(
            title=result["title"],
            url=result["url"],
            author=result["channel_title"],
            source="YouTube",
            content_type="video",
            description=result["description"],
            duration=format_duration(seconds),
            duration_seconds=seconds,
            publish_date=result["published_at"] or None,
            thumbnail_url=result["thumbnail_url"] or None,
            metadata={
                "videoId": result["video_id"],
                "viewCount": info.get("view_count", 0),
                "likeCount": info.get("like_count", 0),
                "learningLevel": level,
            },
        )
