"""YouTube Data API v3 integration (search.list + videos.list).

Docs: https://developers.google.com/youtube/v3/docs
"""

import logging
import time
from typing import Any

import httpx

from eduscout.config import settings

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"

# videos.list accepts at most 50 ids per call
MAX_IDS_PER_CALL = 50


class YouTubeClient:
    """Async client for the YouTube Data API.

    Every public method returns an empty result on any failure — callers
    never see an exception from here.
    """

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        self.api_key = api_key if api_key is not None else settings.youtube_api_key
        self.timeout = timeout or settings.external_call_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        max_results: int = 15,
        order: str = "relevance",
        video_duration: str | None = "medium",
    ) -> list[dict[str, Any]]:
        """Search videos. Returns parsed snippets: id, title, description, channel, ..."""
        if not self.enabled:
            logger.info("YouTube search skipped | no API key")
            return []

        params = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "maxResults": str(min(max_results, 50)),
            "order": order,
            "key": self.api_key,
        }
        if video_duration:
            params["videoDuration"] = video_duration

        data = await self._get(SEARCH_URL, params, "search", query)
        if data is None:
            return []

        videos = []
        for item in data.get("items", []):
            parsed = self._parse_search_item(item)
            if parsed:
                videos.append(parsed)
        logger.info("YouTube search OK | videos=%d | query=%s", len(videos), query[:80])
        return videos

    async def video_details(self, video_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Batch-fetch duration and statistics. Returns {video_id: details}."""
        if not self.enabled or not video_ids:
            return {}

        details: dict[str, dict[str, Any]] = {}
        for i in range(0, len(video_ids), MAX_IDS_PER_CALL):
            batch = video_ids[i:i + MAX_IDS_PER_CALL]
            params = {
                "part": "contentDetails,statistics",
                "id": ",".join(batch),
                "key": self.api_key,
            }
            data = await self._get(VIDEOS_URL, params, "videos", f"{len(batch)} ids")
            if data is None:
                continue
            for item in data.get("items", []):
                video_id = item.get("id")
                if video_id:
                    details[video_id] = self._parse_details(item)
        return details

    async def _get(
        self, url: str, params: dict[str, str], label: str, context: str,
    ) -> dict[str, Any] | None:
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url, params=params)
                elapsed_ms = int((time.monotonic() - start) * 1000)

                if resp.status_code != 200:
                    logger.warning(
                        "YouTube %s | status=%d | %dms | %s",
                        label, resp.status_code, elapsed_ms, context[:80],
                    )
                    return None
                return resp.json()

        except httpx.TimeoutException:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("YouTube %s timeout | %dms | %s", label, elapsed_ms, context[:80])
            return None
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("YouTube %s error | %dms | %s", label, elapsed_ms, str(e)[:200])
            return None

    def _parse_search_item(self, item: dict) -> dict[str, Any] | None:
        id_field = item.get("id")
        video_id = id_field.get("videoId") if isinstance(id_field, dict) else None
        if not video_id:
            return None
        snippet = item.get("snippet") or {}
        thumbnails = snippet.get("thumbnails") or {}
        thumbnail = ""
        for size in ("high", "medium", "default"):
            if isinstance(thumbnails.get(size), dict) and thumbnails[size].get("url"):
                thumbnail = thumbnails[size]["url"]
                break
        return {
            "video_id": video_id,
            "title": snippet.get("title", ""),
            "description": snippet.get("description", ""),
            "channel_title": snippet.get("channelTitle", ""),
            "published_at": snippet.get("publishedAt", ""),
            "thumbnail_url": thumbnail,
            "url": f"https://www.youtube.com/watch?v={video_id}",
        }

    def _parse_details(self, item: dict) -> dict[str, Any]:
        content = item.get("contentDetails") or {}
        stats = item.get("statistics") or {}
        return {
            "duration": content.get("duration", ""),
            "view_count": _to_int(stats.get("viewCount")),
            "like_count": _to_int(stats.get("likeCount")),
        }


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
