"""RSS/Atom collector using requests + feedparser."""

import html
import logging
import re
from datetime import datetime
from time import mktime, struct_time
from typing import Any

import feedparser
import requests

from collectors.base import BaseCollector
from config import FEED_REQUEST_TIMEOUT, FEED_USER_AGENT

logger = logging.getLogger(__name__)


def _strip_html(text: str) -> str:
    """Remove HTML tags and unescape entities."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<br\s*/?>|</p>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


class RssCollector(BaseCollector):
    """Collect articles from a source's RSS or Atom feed."""

    kind = "rss"

    @staticmethod
    def _parse_published(entry: Any) -> datetime | None:
        """Parse published date from feed entry."""
        for field in ("published_parsed", "updated_parsed"):
            val = getattr(entry, field, None)
            if isinstance(val, struct_time):
                try:
                    return datetime.fromtimestamp(mktime(val))
                except (ValueError, OverflowError):
                    pass
        # Fallback: try raw string
        for field in ("published", "updated"):
            raw = getattr(entry, field, None)
            if raw:
                try:
                    return datetime.fromisoformat(raw.replace("Z", "+00:00"))
                except (ValueError, TypeError):
                    pass
        return None

    @staticmethod
    def _extract_body(entry: Any) -> str | None:
        """Extract plain-text body from a feed entry, preferring full content."""
        if hasattr(entry, "content") and entry.content:
            for c in entry.content:
                if c.get("value"):
                    return _strip_html(c["value"])
        summary = getattr(entry, "summary", None)
        return _strip_html(summary) if summary else None

    def _fetch_feed(self) -> Any | None:
        if not self.feed_url:
            logger.warning("[%s] Source has no feed URL", self.source_name)
            return None
        try:
            resp = requests.get(
                self.feed_url,
                headers={"User-Agent": FEED_USER_AGENT},
                timeout=FEED_REQUEST_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("[%s] Feed request failed: %s", self.source_name, e)
            return None
        return feedparser.parse(resp.content)

    def collect(self) -> list[dict[str, Any]]:
        """Parse the feed and return article dicts for the pipeline."""
        logger.info("Fetching feed: %s", self.source_name)
        feed = self._fetch_feed()
        if feed is None:
            return []

        if feed.bozo and not feed.entries:
            logger.warning("Feed %s returned bozo with no entries: %s", self.source_name, feed.bozo_exception)
            return []

        articles: list[dict[str, Any]] = []
        seen: set[str] = set()
        for entry in feed.entries:
            entry_url = getattr(entry, "link", "") or ""
            if not entry_url or entry_url in seen:
                continue
            seen.add(entry_url)

            articles.append({
                "url": entry_url,
                "title": getattr(entry, "title", None),
                "body": self._extract_body(entry),
                "author": getattr(entry, "author", None),
                "published_at": self._parse_published(entry),
                "import_metadata": {"feed": self.source_name, "collector": self.kind},
            })

        logger.info("Got %d entries from %s", len(articles), self.source_name)
        return articles
