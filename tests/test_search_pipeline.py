"""Tests for the search pipeline — fetchers, scorer, ranking and orchestration.

YouTube and LLM calls are mocked since we don't have API keys in CI.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from eduscout.config import settings
from eduscout.exceptions import MalformedUpstreamResponseError
from eduscout.orchestrator.schemas import (
    RelevanceAssessment,
    ScoredContent,
    SearchInput,
    SearchResultSet,
)
from eduscout.pipelines.search import SearchPipeline
from eduscout.pipelines.search.catalog_fetcher import (
    BlogFetcher,
    WebsiteFetcher,
    _CatalogFetcher,
)
from eduscout.pipelines.search.ranking import (
    duration_window,
    filter_and_sort,
    min_relevance,
    passes_filter,
    sort_by_relevance,
)
from eduscout.pipelines.search.relevance_scorer import (
    RelevanceScorer,
    build_user_message,
    parse_assessment,
)
from eduscout.pipelines.search.video_fetcher import VideoFetcher
from eduscout.services.cache import SearchCache


def _yt_result(video_id, title=None):
    return {
        "video_id": video_id,
        "title": title or f"Video {video_id}",
        "description": f"Description of {video_id}",
        "channel_title": "Channel",
        "published_at": "2024-01-01T00:00:00Z",
        "thumbnail_url": "",
        "url": f"https://www.youtube.com/watch?v={video_id}",
    }


def _yt_details(duration, views=0, likes=0):
    return {"duration": duration, "view_count": views, "like_count": likes}


def _mock_youtube(results, details):
    youtube = MagicMock()
    youtube.search = AsyncMock(return_value=results)
    youtube.video_details = AsyncMock(return_value=details)
    return youtube


def _mock_scorer(scores: dict[str, int], educational: dict[str, bool] | None = None):
    """Scorer mock returning a fixed score per title."""
    educational = educational or {}

    def _score(title, description, query, content_type, duration=None, learning_level=None):
        return RelevanceAssessment(
            summary=f"Summary of {title}",
            isEducational=educational.get(title, True),
            relevanceScore=scores.get(title, 80),
            learningTopics=[query],
        )

    scorer = MagicMock()
    scorer.score = AsyncMock(side_effect=_score)
    return scorer


# ═══════════════ Video Fetcher ═══════════════


class TestVideoFetcher:
    @pytest.mark.asyncio
    async def test_duration_window_beginner(self):
        youtube = _mock_youtube(
            [_yt_result("short"), _yt_result("ok"), _yt_result("long")],
            {
                "short": _yt_details("PT4M59S"),
                "ok": _yt_details("PT5M"),
                "long": _yt_details("PT1H0M1S"),
            },
        )
        fetcher = VideoFetcher(youtube=youtube)
        candidates = await fetcher.fetch("python basics", "python", "beginner")
        assert [c.metadata["videoId"] for c in candidates] == ["ok"]
        assert candidates[0].duration == "5:00"
        assert candidates[0].duration_seconds == 300

    @pytest.mark.asyncio
    async def test_level_minimums(self):
        results = [_yt_result("a"), _yt_result("b"), _yt_result("c")]
        details = {
            "a": _yt_details("PT6M"),
            "b": _yt_details("PT11M"),
            "c": _yt_details("PT16M"),
        }
        fetcher = VideoFetcher(youtube=_mock_youtube(results, details))
        intermediate = await fetcher.fetch("q", "q", "intermediate")
        advanced = await fetcher.fetch("q", "q", "advanced")
        assert {c.metadata["videoId"] for c in intermediate} == {"b", "c"}
        assert {c.metadata["videoId"] for c in advanced} == {"c"}

    @pytest.mark.asyncio
    async def test_ranked_by_views_plus_likes(self):
        results = [_yt_result("low"), _yt_result("high"), _yt_result("mid")]
        details = {
            "low": _yt_details("PT10M", views=100, likes=5),
            "high": _yt_details("PT10M", views=5000, likes=100),
            "mid": _yt_details("PT10M", views=900, likes=200),
        }
        fetcher = VideoFetcher(youtube=_mock_youtube(results, details))
        candidates = await fetcher.fetch("q", "q", "beginner")
        assert [c.metadata["videoId"] for c in candidates] == ["high", "mid", "low"]

    @pytest.mark.asyncio
    async def test_candidate_cap(self, monkeypatch):
        monkeypatch.setattr(settings, "video_candidate_cap", 2)
        results = [_yt_result(f"v{i}") for i in range(5)]
        details = {f"v{i}": _yt_details("PT10M", views=i) for i in range(5)}
        fetcher = VideoFetcher(youtube=_mock_youtube(results, details))
        candidates = await fetcher.fetch("q", "q", "beginner")
        assert [c.metadata["videoId"] for c in candidates] == ["v4", "v3"]

    @pytest.mark.asyncio
    async def test_missing_details_dropped(self):
        fetcher = VideoFetcher(youtube=_mock_youtube([_yt_result("x")], {}))
        assert await fetcher.fetch("q", "q", "beginner") == []

    @pytest.mark.asyncio
    async def test_candidate_shape(self):
        youtube = _mock_youtube(
            [_yt_result("abc", title="Intro to Python")],
            {"abc": _yt_details("PT20M", views=10, likes=2)},
        )
        fetcher = VideoFetcher(youtube=youtube)
        [candidate] = await fetcher.fetch("q", "python", "beginner")
        assert candidate.content_type == "video"
        assert candidate.source == "YouTube"
        assert candidate.url == "https://www.youtube.com/watch?v=abc"
        assert candidate.metadata == {
            "videoId": "abc", "viewCount": 10, "likeCount": 2, "learningLevel": "beginner",
        }
        assert candidate.thumbnail_url is None

    @pytest.mark.asyncio
    async def test_upstream_exception_returns_empty(self):
        youtube = MagicMock()
        youtube.search = AsyncMock(side_effect=RuntimeError("boom"))
        fetcher = VideoFetcher(youtube=youtube)
        assert await fetcher.fetch("q", "q", "beginner") == []

    @pytest.mark.asyncio
    async def test_no_results_skips_details_call(self):
        youtube = _mock_youtube([], {})
        fetcher = VideoFetcher(youtube=youtube)
        assert await fetcher.fetch("q", "q", "beginner") == []
        youtube.video_details.assert_not_awaited()


# ═══════════════ Catalog Fetchers ═══════════════


class TestCatalogFetchers:
    @pytest.mark.asyncio
    async def test_websites_beginner(self):
        items = await WebsiteFetcher().fetch("python basics ...", "Python", "beginner")
        assert 1 <= len(items) <= 4
        assert all(isinstance(i, ScoredContent) for i in items)
        assert all(i.content_type == "website" for i in items)
        assert all(i.relevanceScore == 85 for i in items)
        assert items[0].title == "Python - Complete Beginner's Guide"
        assert items[0].metadata["readTime"] == "15 min read"
        assert items[0].metadata["learningLevel"] == "beginner"

    @pytest.mark.asyncio
    async def test_website_scores_per_level(self):
        fetcher = WebsiteFetcher()
        intermediate = await fetcher.fetch("", "react", "intermediate")
        advanced = await fetcher.fetch("", "react", "advanced")
        assert intermediate[0].relevanceScore == 88
        assert advanced[0].relevanceScore == 92
        assert "Advanced Concepts" in advanced[0].title

    @pytest.mark.asyncio
    async def test_blogs(self):
        items = await BlogFetcher().fetch("", "machine learning", "advanced")
        assert 1 <= len(items) <= 4
        assert items[0].title == "Understanding machine learning: A Advanced's Perspective"
        assert items[0].relevanceScore == 90
        assert items[0].learningTopics == ["machine learning", "advanced level", "tutorial"]

    def test_topic_is_url_encoded(self):
        items = WebsiteFetcher().build("C++ & Rust", "beginner")
        assert "C%2B%2B+%26+Rust" in items[0].url

    def test_deterministic(self):
        assert BlogFetcher().build("go", "beginner") == BlogFetcher().build("go", "beginner")

    def test_base_class_has_no_shared_score_table(self):
        assert "scores" not in vars(_CatalogFetcher)
        assert WebsiteFetcher.scores is not BlogFetcher.scores


# ═══════════════ Relevance Scorer ═══════════════


class TestRelevanceScorer:
    @pytest.mark.asyncio
    async def test_llm_success_with_prose(self):
        text = (
            "Here is my analysis:\n"
            '{"summary": "Covers lists and loops.", "isEducational": true, '
            '"relevanceScore": 82, "learningTopics": ["lists", "loops"]}\nThanks!'
        )
        with patch("eduscout.pipelines.search.relevance_scorer.call_llm",
                   new_callable=AsyncMock, return_value=text):
            result = await RelevanceScorer().score("Lists", "desc", "python", "video", "12:00")
        assert result.relevanceScore == 82
        assert result.isEducational is True
        assert result.learningTopics == ["lists", "loops"]

    @pytest.mark.asyncio
    async def test_upstream_failure_fallback(self):
        with patch("eduscout.pipelines.search.relevance_scorer.call_llm",
                   new_callable=AsyncMock, side_effect=Exception("503")):
            result = await RelevanceScorer().score("Intro", "", "python", "video")
        assert result.isEducational is True
        assert 50 <= result.relevanceScore <= 75
        assert result.learningTopics == ["python"]
        assert "Intro" in result.summary

    @pytest.mark.asyncio
    async def test_no_api_key_fallback(self):
        """Without an LLM key the real client raises and the scorer falls back."""
        result = await RelevanceScorer().score("Intro", "", "python", "video")
        assert result.relevanceScore == 50
        assert result.learningTopics == ["python"]

    @pytest.mark.asyncio
    async def test_unparseable_fallback(self):
        with patch("eduscout.pipelines.search.relevance_scorer.call_llm",
                   new_callable=AsyncMock, return_value="I think it is great!"):
            result = await RelevanceScorer().score("Intro", "", "python", "video")
        assert result.relevanceScore == 75
        assert result.isEducational is True
        assert result.learningTopics == ["python"]

    @pytest.mark.asyncio
    async def test_timeout_fallback(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return "{}"

        with patch("eduscout.pipelines.search.relevance_scorer.call_llm", side_effect=slow):
            result = await RelevanceScorer(timeout=0.01).score("Intro", "", "python", "video")
        assert result.relevanceScore == 50

    @pytest.mark.asyncio
    async def test_llm_called_with_scoring_temperature(self):
        mock = AsyncMock(return_value='{"relevanceScore": 70}')
        with patch("eduscout.pipelines.search.relevance_scorer.call_llm", mock):
            await RelevanceScorer().score("Intro", "", "python", "video", "1:30")
        kwargs = mock.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 300
        assert "very short video" in mock.call_args.args[1]

    def test_parse_clamps_score(self):
        assert parse_assessment('{"relevanceScore": 140}').relevanceScore == 100
        assert parse_assessment('{"relevanceScore": -3}').relevanceScore == 0
        assert parse_assessment('{"relevanceScore": "72.6"}').relevanceScore == 73

    def test_parse_rejects_missing_score(self):
        with pytest.raises(MalformedUpstreamResponseError):
            parse_assessment('{"summary": "no score"}')

    def test_parse_rejects_bad_types(self):
        with pytest.raises(MalformedUpstreamResponseError):
            parse_assessment('{"relevanceScore": "high"}')

    @pytest.mark.parametrize("raw", ["1e999", "Infinity", '"inf"', "-1e999", '"nan"'])
    def test_parse_rejects_non_finite_score(self, raw):
        with pytest.raises(MalformedUpstreamResponseError):
            parse_assessment(f'{{"relevanceScore": {raw}}}')

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["1e999", "Infinity", '"inf"'])
    async def test_non_finite_score_uses_parse_fallback(self, raw):
        text = f'{{"summary": "s", "isEducational": true, "relevanceScore": {raw}, "learningTopics": []}}'
        with patch("eduscout.pipelines.search.relevance_scorer.call_llm",
                   new_callable=AsyncMock, return_value=text):
            result = await RelevanceScorer().score("T", "d", "python", "video", "10:00")
        assert result.relevanceScore == 75
        assert result.learningTopics == ["python"]

    def test_parse_single_topic_string(self):
        result = parse_assessment('{"relevanceScore": 60, "learningTopics": "recursion"}')
        assert result.learningTopics == ["recursion"]

    def test_prompt_short_video_caveat(self):
        msg = build_user_message("T", "D", "python", "video", "1:45")
        assert "very short video" in msg

    def test_prompt_good_duration_note(self):
        msg = build_user_message("T", "D", "python", "video", "12:00")
        assert "Good duration" in msg

    def test_prompt_no_note_for_blogs(self):
        msg = build_user_message("T", "D", "python", "blog", "1:45")
        assert "very short" not in msg
        assert 'search query "python"' in msg


# ═══════════════ Ranking ═══════════════


class TestRanking:
    def test_thresholds(self):
        assert min_relevance("beginner") == 60
        assert min_relevance("intermediate") == 65
        assert min_relevance("advanced") == 70
        assert min_relevance("advanced", "blog") == 30

    def test_duration_windows(self):
        assert duration_window("beginner") == (300, 3600)
        assert duration_window("intermediate") == (600, 3600)
        assert duration_window("advanced") == (900, 3600)

    def test_threshold_boundary(self, make_video):
        assert passes_filter(make_video(score=60), "beginner") is True
        assert passes_filter(make_video(score=59), "beginner") is False

    def test_not_educational_dropped(self, make_video):
        assert passes_filter(make_video(score=99, educational=False), "beginner") is False

    def test_duration_safety_net(self, make_video):
        assert passes_filter(make_video(seconds=200, score=95), "beginner") is False
        assert passes_filter(make_video(seconds=3601, score=95), "beginner") is False
        assert passes_filter(make_video(seconds=None, score=95), "beginner") is False

    def test_catalog_items_use_flat_minimum(self):
        blogs = BlogFetcher().build("python", "advanced")
        assert all(passes_filter(b, "advanced") for b in blogs)

    def test_sort_descending_stable(self, make_video):
        items = [
            make_video("a", score=70),
            make_video("b", score=90),
            make_video("c", score=70),
            make_video("d", score=80),
        ]
        assert [i.title for i in sort_by_relevance(items)] == ["b", "d", "a", "c"]

    def test_sweet_spot_bonus_only_affects_order(self, make_video, monkeypatch):
        monkeypatch.setattr(settings, "min_duration_advanced", 100)
        inside = make_video("inside", score=70, seconds=600)
        outside = make_video("outside", score=73, seconds=200)
        ordered = filter_and_sort([outside, inside], "advanced")
        # 70 + 5 bonus outranks 73 without bonus
        assert [i.title for i in ordered] == ["inside", "outside"]
        # bonus never rescues a score below threshold
        assert passes_filter(make_video(score=68, seconds=600), "advanced") is False


# ═══════════════ Pipeline ═══════════════


def _pipeline(youtube, scorer, cache=None):
    return SearchPipeline(
        cache=cache or SearchCache(),
        fetchers=[VideoFetcher(youtube=youtube), BlogFetcher(), WebsiteFetcher()],
        scorer=scorer,
    )


class TestSearchPipeline:
    @pytest.mark.asyncio
    async def test_python_beginner_scenario(self):
        youtube = _mock_youtube(
            [_yt_result("tiny", "Tiny"), _yt_result("good", "Good")],
            {"tiny": _yt_details("PT3M20S"), "good": _yt_details("PT15M")},
        )
        scorer = _mock_scorer({"Tiny": 95, "Good": 75})
        pipeline = _pipeline(youtube, scorer)

        result = await pipeline.execute(SearchInput(query="python", learning_level="beginner"))

        assert youtube.search.call_args.args[0] == (
            "python basics fundamentals introduction tutorial getting started"
        )
        assert [v.title for v in result.videos] == ["Good"]
        assert result.learningLevel == "beginner"
        assert result.totalResults == len(result.videos) + len(result.blogs) + len(result.websites)

    @pytest.mark.asyncio
    async def test_threshold_boundary_end_to_end(self):
        youtube = _mock_youtube(
            [_yt_result("a", "At"), _yt_result("b", "Below")],
            {"a": _yt_details("PT10M"), "b": _yt_details("PT10M")},
        )
        scorer = _mock_scorer({"At": 60, "Below": 59})
        result = await _pipeline(youtube, scorer).execute(SearchInput(query="sql"))
        assert [v.title for v in result.videos] == ["At"]

    @pytest.mark.asyncio
    async def test_invariants_hold(self):
        results = [_yt_result(f"v{i}", f"V{i}") for i in range(6)]
        details = {f"v{i}": _yt_details(f"PT{5 + i * 10}M") for i in range(6)}
        scorer = _mock_scorer(
            {"V0": 40, "V1": 66, "V2": 90, "V3": 70, "V4": 100, "V5": 71},
            educational={"V4": False},
        )
        result = await _pipeline(_mock_youtube(results, details), scorer).execute(
            SearchInput(query="docker", learning_level="intermediate"),
        )
        low, high = duration_window("intermediate")
        for video in result.videos:
            assert video.relevanceScore >= 65
            assert video.isEducational is not False
            assert low <= video.duration_seconds <= high
        scores = [v.relevanceScore for v in result.videos]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_catalog_items_not_rescored(self):
        youtube = _mock_youtube([_yt_result("a", "A")], {"a": _yt_details("PT10M")})
        scorer = _mock_scorer({"A": 80})
        result = await _pipeline(youtube, scorer).execute(SearchInput(query="git"))
        assert scorer.score.await_count == 1
        assert len(result.blogs) >= 1
        assert len(result.websites) >= 1

    @pytest.mark.asyncio
    async def test_cache_hit_skips_video_api(self):
        youtube = _mock_youtube([_yt_result("a", "A")], {"a": _yt_details("PT10M")})
        scorer = _mock_scorer({"A": 80})
        pipeline = _pipeline(youtube, scorer)

        first, first_cached = await pipeline.run(SearchInput(query="react", learning_level="beginner"))
        second, second_cached = await pipeline.run(SearchInput(query="React ", learning_level="beginner"))

        assert youtube.search.await_count == 1
        assert scorer.score.await_count == 1
        assert (first_cached, second_cached) == (False, True)
        assert second.model_dump(mode="json") == first.model_dump(mode="json")

    @pytest.mark.asyncio
    async def test_cache_partitioned_by_level(self):
        youtube = _mock_youtube([], {})
        pipeline = _pipeline(youtube, _mock_scorer({}))
        await pipeline.execute(SearchInput(query="react", learning_level="beginner"))
        await pipeline.execute(SearchInput(query="react", learning_level="advanced"))
        assert youtube.search.await_count == 2

    @pytest.mark.asyncio
    async def test_fetcher_failure_isolated(self):
        broken = MagicMock()
        broken.fetch = AsyncMock(side_effect=RuntimeError("source down"))
        pipeline = SearchPipeline(
            cache=SearchCache(),
            fetchers=[broken, BlogFetcher(), WebsiteFetcher()],
            scorer=_mock_scorer({}),
        )
        result = await pipeline.execute(SearchInput(query="css"))
        assert result.videos == []
        assert len(result.blogs) > 0
        assert len(result.websites) > 0

    @pytest.mark.asyncio
    async def test_single_score_failure_isolated(self):
        youtube = _mock_youtube(
            [_yt_result("a", "A"), _yt_result("b", "B")],
            {"a": _yt_details("PT10M"), "b": _yt_details("PT10M")},
        )

        def _score(title, **kwargs):
            if title == "A":
                raise RuntimeError("scoring crashed")
            return RelevanceAssessment(relevanceScore=90, learningTopics=["x"])

        scorer = MagicMock()
        scorer.score = AsyncMock(side_effect=_score)
        result = await _pipeline(youtube, scorer).execute(SearchInput(query="css"))
        # A falls back to 50, below the beginner threshold of 60
        assert [v.title for v in result.videos] == ["B"]

    @pytest.mark.asyncio
    async def test_scoring_concurrency_bounded(self):
        results = [_yt_result(f"v{i}", f"V{i}") for i in range(6)]
        details = {f"v{i}": _yt_details("PT10M") for i in range(6)}
        active = 0
        peak = 0

        async def _score(title, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return RelevanceAssessment(relevanceScore=80)

        scorer = MagicMock()
        scorer.score = _score
        pipeline = SearchPipeline(
            cache=SearchCache(),
            fetchers=[VideoFetcher(youtube=_mock_youtube(results, details))],
            scorer=scorer,
            scoring_concurrency=2,
        )
        result = await pipeline.execute(SearchInput(query="k8s"))
        assert peak <= 2
        assert len(result.videos) == 6

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns(self):
        cache = MagicMock()
        cache.get = AsyncMock(return_value=None)
        cache.put = AsyncMock(side_effect=RuntimeError("db down"))
        pipeline = SearchPipeline(cache=cache, fetchers=[BlogFetcher()], scorer=_mock_scorer({}))
        result = await pipeline.execute(SearchInput(query="html"))
        assert len(result.blogs) > 0

    @pytest.mark.asyncio
    async def test_cache_read_failure_is_miss(self):
        cache = MagicMock()
        cache.get = AsyncMock(side_effect=RuntimeError("db down"))
        cache.put = AsyncMock()
        pipeline = SearchPipeline(cache=cache, fetchers=[WebsiteFetcher()], scorer=_mock_scorer({}))
        result, cached = await pipeline.run(SearchInput(query="html"))
        assert cached is False
        assert len(result.websites) > 0
        cache.put.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_cached_payload_recomputed(self):
        cache = SearchCache()
        await cache.put("html", "all:beginner", {"videos": "not a list"})
        pipeline = SearchPipeline(cache=cache, fetchers=[WebsiteFetcher()], scorer=_mock_scorer({}))
        result, cached = await pipeline.run(SearchInput(query="html"))
        assert cached is False
        assert isinstance(result, SearchResultSet)
        assert len(result.websites) > 0
