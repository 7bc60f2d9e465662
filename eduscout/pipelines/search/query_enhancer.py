"""Query Enhancer — biases source searches toward the learner's level."""

LEVEL_KEYWORDS = {
    "beginner": "basics fundamentals introduction tutorial getting started",
    "intermediate": "practical examples implementation hands-on intermediate",
    "advanced": "advanced expert professional in-depth comprehensive",
}


def enhance_query(topic: str, level: str) -> str:
    """Append the level's keyword phrase to the topic."""
    return f"{topic.strip()} {LEVEL_KEYWORDS[level]}"


def normalize_query(topic: str) -> str:
    """Cache key form of a topic: trimmed, single-spaced, lowercase."""
    return " ".join(topic.split()).lower()
