"""Blog and website fetchers backed by a fixed catalog of educational platforms.

No live API is integrated for these sources. Each platform entry is templated
with the topic and learning level and carries a trusted relevance score, so
the items come out already scored and skip the LLM scorer.
"""

import logging
from dataclasses import dataclass
from urllib.parse import quote_plus

from eduscout.orchestrator.schemas import ScoredContent

logger = logging.getLogger(__name__)

LEVEL_DIFFICULTY = {
    "beginner": "Beginner",
    "intermediate": "Intermediate",
    "advanced": "Advanced",
}


@dataclass(frozen=True)
class Platform:
    name: str
    author: str
    url_template: str  # {q} = url-encoded topic, {level} = learning level
    read_time: dict[str, str]


WEBSITE_PLATFORMS = (
    Platform(
        name="Coursera",
        author="Coursera",
        url_template="https://www.coursera.org/search?query={q}&productDifficultyLevel={difficulty}",
        read_time={"beginner": "15 min read", "intermediate": "25 min read", "advanced": "35 min read"},
    ),
    Platform(
        name="edX",
        author="edX",
        url_template="https://www.edx.org/search?q={q}&level={difficulty}",
        read_time={"beginner": "15 min read", "intermediate": "25 min read", "advanced": "35 min read"},
    ),
    Platform(
        name="Khan Academy",
        author="Khan Academy",
        url_template="https://www.khanacademy.org/search?page_search_query={q}",
        read_time={"beginner": "10 min read", "intermediate": "20 min read", "advanced": "30 min read"},
    ),
)

BLOG_PLATFORMS = (
    Platform(
        name="freeCodeCamp News",
        author="freeCodeCamp",
        url_template="https://www.freecodecamp.org/news/search/?query={q}%20{level}",
        read_time={"beginner": "20 min read", "intermediate": "20 min read", "advanced": "20 min read"},
    ),
    Platform(
        name="DEV Community",
        author="DEV Community",
        url_template="https://dev.to/search?q={q}%20{level}",
        read_time={"beginner": "12 min read", "intermediate": "15 min read", "advanced": "18 min read"},
    ),
)

WEBSITE_SCORES = {"beginner": 85, "intermediate": 88, "advanced": 92}
BLOG_SCORES = {"beginner": 80, "intermediate": 85, "advanced": 90}


def _website_copy(topic: str, level: str) -> tuple[str, str, list[str]]:
    if level == "beginner":
        return (
            f"{topic} - Complete Beginner's Guide",
            f"Start your {topic} journey with this comprehensive beginner's guide "
            f"covering all the fundamentals you need to know.",
            [f"{topic} basics", "fundamentals", "getting started"],
        )
    if level == "intermediate":
        return (
            f"{topic} - Practical Implementation Guide",
            f"Build upon your {topic} knowledge with practical examples and "
            f"real-world implementations.",
            [f"{topic} implementation", "practical examples", "hands-on"],
        )
    return (
        f"{topic} - Advanced Concepts and Best Practices",
        f"Master advanced {topic} concepts with in-depth analysis and professional techniques.",
        [f"advanced {topic}", "expert techniques", "best practices"],
    )


def _blog_copy(topic: str, level: str) -> tuple[str, str, list[str]]:
    return (
        f"Understanding {topic}: A {level.capitalize()}'s Perspective",
        f"Dive deep into {topic} with this detailed {level}-level analysis "
        f"covering key concepts and practical applications.",
        [topic, f"{level} level", "tutorial"],
    )


class _CatalogFetcher:
    content_type: str
    platforms: tuple[Platform, ...]
    scores: dict[str, int]

    def _copy(self, topic: str, level: str) -> tuple[str, str, list[str]]:
        raise NotImplementedError

    async def fetch(self, enhanced_query: str, topic: str, level: str) -> list[ScoredContent]:
        try:
            return self.build(topic, level)
        except Exception as e:
            logger.warning("%s catalog failed | %s", self.content_type, str(e)[:200])
            return []

    def build(self, topic: str, level: str) -> list[ScoredContent]:
        topic = topic.strip()
        title, summary, topics = self._copy(topic, level)
        items = []
        for platform in self.platforms:
            url = platform.url_template.format(
                q=quote_plus(topic),
                level=level,
                difficulty=LEVEL_DIFFICULTY[level],
            )
            items.append(ScoredContent(
                title=title,
                url=url,
                author=platform.author,
                source=platform.name,
                content_type=self.content_type,
                summary=summary,
                isEducational=True,
                relevanceScore=self.scores[level],
                learningTopics=list(topics),
                metadata={
                    "readTime": platform.read_time[level],
                    "difficulty": LEVEL_DIFFICULTY[level],
                    "learningLevel": level,
                    "platform": platform.name,
                },
            ))
        return items


class WebsiteFetcher(_CatalogFetcher):
    content_type = "website"
    platforms = WEBSITE_PLATFORMS
    scores = WEBSITE_SCORES

    def _copy(self, topic: str, level: str) -> tuple[str, str, list[str]]:
        return _website_copy(topic, level)


class BlogFetcher(_CatalogFetcher):
    content_type = "blog"
    platforms = BLOG_PLATFORMS
    scores = BLOG_SCORES

    def _copy(self, topic: str, level: str) -> tuple[str, str, list[str]]:
        return _blog_copy(topic, level)
