"""Derived fields computed from an article body."""

import hashlib
import re

_WS_RE = re.compile(r"\s+")

WORDS_PER_MINUTE = 200


def count_words(body: str | None) -> int:
    """Whitespace-separated token count of the trimmed body."""
    if not body or not body.strip():
        return 0
    return len(_WS_RE.split(body.strip()))


def reading_time_minutes(word_count: int) -> int:
    return max(1, round(word_count / WORDS_PER_MINUTE))


def content_checksum(body: str | None) -> str | None:
    """Stable hash of the body, insensitive to whitespace layout."""
    if not body or not body.strip():
        return None
    collapsed = _WS_RE.sub(" ", body.strip())
    return hashlib.sha256(collapsed.encode("utf-8")).hexdigest()
