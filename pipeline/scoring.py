"""Heuristic quality and regional relevance scoring.

Used only when the scraper did not supply a score itself, either on the
payload or inside its import metadata.
"""

import re
from datetime import datetime

from db.models import Topic

# Pattern cache: phrase -> compiled word-boundary regex
_PATTERNS: dict[str, re.Pattern] = {}


def _pattern(phrase: str) -> re.Pattern:
    key = phrase.lower().strip()
    if key not in _PATTERNS:
        _PATTERNS[key] = re.compile(r"(?<!\w)" + re.escape(key) + r"(?!\w)", re.IGNORECASE)
    return _PATTERNS[key]


def mentions(text: str | None, phrase: str) -> int:
    """Count whole-word mentions of a phrase in text."""
    if not text or not phrase or not phrase.strip():
        return 0
    return len(_pattern(phrase).findall(text))


def _clamp(score: int) -> int:
    return min(100, max(0, score))


def quality_score(
    title: str | None,
    body: str | None,
    word_count: int,
    author: str | None = None,
    published_at: datetime | None = None,
) -> int:
    """Content quality estimate, 0-100 around a base of 50."""
    title = title or ""
    body = body or ""
    score = 50

    if word_count > 300:
        score += 20
    elif word_count > 150:
        score += 15
    elif word_count > 100:
        score += 10
    elif word_count > 50:
        score += 5
    elif word_count < 30:
        score -= 10

    if author:
        score += 5
    if published_at:
        score += 3

    lowered = title.lower()
    if "error" in lowered or "404" in lowered:
        score -= 50
    if body and len(body) < len(title) * 2:
        score -= 15

    return _clamp(score)


def competing_region_mentions(title: str | None, topic: Topic) -> list[str]:
    """Competing regions named in the title of a regional topic's article."""
    if topic.topic_type != "regional":
        return []
    return [region for region in topic.competing_region_list if mentions(title, region)]


def relevance_score(
    title: str | None,
    body: str | None,
    topic: Topic,
    competing_penalty: int = 0,
) -> int:
    """Regional relevance of an article to a topic, 0-100."""
    score = 0

    if topic.region:
        if mentions(title, topic.region):
            score += 30
        score += min(30, 10 * mentions(body, topic.region))

    for keyword in topic.keyword_list:
        if mentions(title, keyword):
            score += 20
        score += min(15, 5 * mentions(body, keyword))

    if competing_penalty and competing_region_mentions(title, topic):
        if not (topic.region and mentions(title, topic.region)):
            score -= competing_penalty

    return _clamp(score)
