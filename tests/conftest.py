"""Shared test fixtures and configuration."""

import os

# No real API keys during tests: YouTube and the LLM are mocked or disabled.
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["YOUTUBE_API_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from eduscout.models import Base  # noqa: E402
from eduscout.orchestrator.schemas import ContentCandidate, ScoredContent  # noqa: E402


@pytest.fixture
async def session_factory():
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Clear the process-wide search cache between tests."""
    from eduscout.services.cache import search_cache

    search_cache.detach()
    search_cache.clear_memory()
    yield
    search_cache.clear_memory()


@pytest.fixture
def sample_search_response():
    """Sample YouTube search.list response."""
    return {
        "items": [
            {
                "id": {"kind": "youtube#video", "videoId": "vid_short"},
                "snippet": {
                    "title": "Python in 2 minutes",
                    "description": "A very quick look at Python.",
                    "channelTitle": "Quick Bytes",
                    "publishedAt": "2024-02-01T10:00:00Z",
                    "thumbnails": {"default": {"url": "https://i.ytimg.com/vi/vid_short/default.jpg"}},
                },
            },
            {
                "id": {"kind": "youtube#video", "videoId": "vid_a"},
                "snippet": {
                    "title": "Python for Beginners - Full Course",
                    "description": "Learn Python basics step by step.",
                    "channelTitle": "Code Academy",
                    "publishedAt": "2023-09-12T08:30:00Z",
                    "thumbnails": {
                        "high": {"url": "https://i.ytimg.com/vi/vid_a/hqdefault.jpg"},
                        "default": {"url": "https://i.ytimg.com/vi/vid_a/default.jpg"},
                    },
                },
            },
            {
                "id": {"kind": "youtube#video", "videoId": "vid_b"},
                "snippet": {
                    "title": "Python Variables and Types Explained",
                    "description": "Variables, strings, numbers and lists.",
                    "channelTitle": "Teach Me Code",
                    "publishedAt": "2024-05-20T14:00:00Z",
                    "thumbnails": {},
                },
            },
            {
                "id": {"kind": "youtube#video", "videoId": "vid_long"},
                "snippet": {
                    "title": "Python Marathon Livestream",
                    "description": "Three hours of live coding.",
                    "channelTitle": "Stream Dev",
                    "publishedAt": "2024-01-01T00:00:00Z",
                    "thumbnails": {},
                },
            },
            {
                "id": {"kind": "youtube#channel", "channelId": "chan_1"},
                "snippet": {"title": "A channel, not a video"},
            },
        ],
    }


@pytest.fixture
def sample_details_response():
    """Sample YouTube videos.list response (contentDetails + statistics)."""
    return {
        "items": [
            {
                "id": "vid_short",
                "contentDetails": {"duration": "PT2M"},
                "statistics": {"viewCount": "9000000", "likeCount": "1000"},
            },
            {
                "id": "vid_a",
                "contentDetails": {"duration": "PT25M10S"},
                "statistics": {"viewCount": "120000", "likeCount": "4000"},
            },
            {
                "id": "vid_b",
                "contentDetails": {"duration": "PT12M"},
                "statistics": {"viewCount": "500000", "likeCount": "20000"},
            },
            {
                "id": "vid_long",
                "contentDetails": {"duration": "PT3H"},
                "statistics": {"viewCount": "800000"},
            },
        ],
    }


@pytest.fixture
def make_video():
    """Factory for scored video items."""

    def _make(title="Video", score=80, seconds=900, educational=True, **extra):
        return ScoredContent(
            title=title,
            url=f"https://www.youtube.com/watch?v={title.lower().replace(' ', '_')}",
            author="Channel",
            source="YouTube",
            content_type="video",
            duration_seconds=seconds,
            summary="summary",
            isEducational=educational,
            relevanceScore=score,
            learningTopics=["python"],
            **extra,
        )

    return _make


@pytest.fixture
def make_candidate():
    """Factory for unscored video candidates."""

    def _make(title="Video", seconds=900, **extra):
        from eduscout.utils.duration import format_duration

        return ContentCandidate(
            title=title,
            url=f"https://www.youtube.com/watch?v={title.lower().replace(' ', '_')}",
            author="Channel",
            source="YouTube",
            content_type="video",
            description=f"About {title}",
            duration=format_duration(seconds),
            duration_seconds=seconds,
            **extra,
        )

    return _make
