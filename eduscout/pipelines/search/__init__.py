"""Search pipeline — educational content aggregation.

Flow: cache check → query enhancement → [videos || blogs || websites] →
relevance scoring (bounded, per video) → filter → sort → cache write
"""

import asyncio
import logging

from pydantic import ValidationError

from eduscout.config import settings
from eduscout.orchestrator.schemas import (
    ContentCandidate,
    ScoredContent,
    SearchInput,
    SearchResultSet,
)
from eduscout.pipelines.search.catalog_fetcher import BlogFetcher, WebsiteFetcher
from eduscout.pipelines.search.query_enhancer import enhance_query, normalize_query
from eduscout.pipelines.search.ranking import filter_and_sort
from eduscout.pipelines.search.relevance_scorer import (
    UPSTREAM_FALLBACK_SCORE,
    RelevanceScorer,
    fallback_assessment,
)
from eduscout.pipelines.search.video_fetcher import VideoFetcher
from eduscout.services.cache import SearchCache, make_bucket_key, search_cache

logger = logging.getLogger(__name__)

CACHE_SCOPE = "all"


class SearchPipeline:
    """Orchestrates one search request end to end."""

    def __init__(
        self,
        cache: SearchCache | None = None,
        fetchers: list | None = None,
        scorer: RelevanceScorer | None = None,
        scoring_concurrency: int | None = None,
    ):
        self.cache = cache if cache is not None else search_cache
        self.fetchers = fetchers if fetchers is not None else [
            VideoFetcher(), BlogFetcher(), WebsiteFetcher(),
        ]
        self.scorer = scorer or RelevanceScorer()
        self.scoring_concurrency = scoring_concurrency or settings.scoring_concurrency

    async def execute(self, inp: SearchInput) -> SearchResultSet:
        result, _ = await self.run(inp)
        return result

    async def run(self, inp: SearchInput) -> tuple[SearchResultSet, bool]:
        """Execute the search. Returns (result set, served from cache)."""
        level = inp.learning_level
        query_key = normalize_query(inp.query)
        bucket_key = make_bucket_key(CACHE_SCOPE, level)

        cached = await self._read_cache(query_key, bucket_key)
        if cached is not None:
            return cached, True

        topic = inp.query.strip()
        enhanced = enhance_query(topic, level)
        logger.info("Search pipeline | topic=%s | level=%s", topic[:80], level)

        candidates = await self._fetch_all(enhanced, topic, level)
        scored = await self._score_all(candidates, topic, level)

        buckets: dict[str, list[ScoredContent]] = {"video": [], "blog": [], "website": []}
        for item in scored:
            buckets[item.content_type].append(item)

        videos = filter_and_sort(buckets["video"], level)
        blogs = filter_and_sort(buckets["blog"], level)
        websites = filter_and_sort(buckets["website"], level)
        result = SearchResultSet(
            videos=videos,
            websites=websites,
            blogs=blogs,
            totalResults=len(videos) + len(websites) + len(blogs),
            learningLevel=level,
        )
        logger.info(
            "Search pipeline complete | videos=%d/%d | blogs=%d | websites=%d",
            len(videos), len(buckets["video"]), len(blogs), len(websites),
        )

        await self._write_cache(query_key, bucket_key, result)
        return result, False

    async def _read_cache(self, query_key: str, bucket_key: str) -> SearchResultSet | None:
        try:
            payload = await self.cache.get(query_key, bucket_key)
        except Exception as e:
            logger.warning("Search pipeline | cache read failed | %s", str(e)[:200])
            return None
        if payload is None:
            return None
        try:
            return SearchResultSet.model_validate(payload)
        except ValidationError as e:
            logger.warning("Search pipeline | cached payload invalid, recomputing | %s", str(e)[:200])
            return None

    async def _write_cache(self, query_key: str, bucket_key: str, result: SearchResultSet) -> None:
        try:
            await self.cache.put(query_key, bucket_key, result.model_dump(mode="json"))
        except Exception as e:
            logger.warning("Search pipeline | cache write failed | %s", str(e)[:200])

    async def _fetch_all(self, enhanced: str, topic: str, level: str) -> list[ContentCandidate]:
        results = await asyncio.gather(
            *(fetcher.fetch(enhanced, topic, level) for fetcher in self.fetchers),
            return_exceptions=True,
        )
        candidates: list[ContentCandidate] = []
        for fetcher, result in zip(self.fetchers, results):
            name = type(fetcher).__name__
            if isinstance(result, BaseException):
                logger.warning("Search pipeline | %s failed | %s", name, str(result)[:200])
                continue
            candidates.extend(result)
        return candidates

    async def _score_all(
        self, candidates: list[ContentCandidate], topic: str, level: str,
    ) -> list[ScoredContent]:
        semaphore = asyncio.Semaphore(self.scoring_concurrency)

        async def score_one(candidate: ContentCandidate) -> ScoredContent:
            if isinstance(candidate, ScoredContent):
                return candidate
            async with semaphore:
                assessment = await self.scorer.score(
                    title=candidate.title,
                    description=candidate.description,
                    query=topic,
                    content_type=candidate.content_type,
                    duration=candidate.duration,
                    learning_level=level,
                )
            return ScoredContent.from_candidate(candidate, assessment)

        results = await asyncio.gather(
            *(score_one(c) for c in candidates),
            return_exceptions=True,
        )

        scored: list[ScoredContent] = []
        for candidate, result in zip(candidates, results):
            if isinstance(result, BaseException):
                logger.warning("Search pipeline | scoring failed | title=%s | %s", candidate.title[:60], str(result)[:200])
                result = ScoredContent.from_candidate(
                    candidate, fallback_assessment(candidate.title, topic, UPSTREAM_FALLBACK_SCORE),
                )
            scored.append(result)
        return scored
