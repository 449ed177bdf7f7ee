"""Base collector: age floor, suppression-aware ingest and stats."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from config import THRESHOLDS, PipelineThresholds
from db.database import get_session, init_db
from db.models import ContentSource, Topic
from pipeline.ingest import ingest_article

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """Abstract base for ingestion workers bound to one content source."""

    kind: str  # Must be set by subclasses

    def __init__(
        self,
        source: ContentSource,
        topic: Topic,
        thresholds: PipelineThresholds | None = None,
    ) -> None:
        init_db()
        self.source_id = source.id
        self.source_name = source.name
        self.feed_url = source.feed_url
        self.topic_id = topic.id
        self.topic_type = topic.topic_type
        self.max_article_age_days = topic.max_article_age_days
        self.thresholds = thresholds or THRESHOLDS

    @abstractmethod
    def collect(self) -> list[dict[str, Any]]:
        """Fetch articles from the source. Returns list of article dicts."""
        ...

    def is_recent(self, article: dict[str, Any], now: datetime | None = None) -> bool:
        """Apply the topic's age floor. Keyword topics keep undated articles."""
        if not self.max_article_age_days:
            return True
        now = now or datetime.utcnow()
        published = article.get("published_at")
        if published is None:
            if self.topic_type == "keyword":
                article["published_at"] = now
                return True
            return False
        if published.tzinfo is not None:
            published = published.replace(tzinfo=None) - (published.utcoffset() or timedelta(0))
        return now - published <= timedelta(days=self.max_article_age_days)

    def save(self, articles: list[dict[str, Any]]) -> dict[str, int]:
        """Ingest articles through the pipeline. Returns per-outcome counts."""
        stats = {
            "fetched": len(articles),
            "too_old": 0,
            "created": 0,
            "existing": 0,
            "suppressed": 0,
            "discarded": 0,
            "processed": 0,
            "errors": 0,
        }
        for data in articles:
            if not self.is_recent(data):
                stats["too_old"] += 1
                logger.debug("[%s] Too old, skipped: %s", self.source_name, data.get("url"))
                continue

            payload = dict(data, topic_id=self.topic_id, source_id=self.source_id)
            session = get_session()
            try:
                result = ingest_article(session, payload, self.thresholds)
            finally:
                session.close()

            if not result["success"]:
                stats["errors"] += 1
                continue
            if result["suppressed"]:
                stats["suppressed"] += 1
            elif not result["created"]:
                stats["existing"] += 1
            else:
                stats["created"] += 1
                if result["status"] == "discarded":
                    stats["discarded"] += 1
                elif result["status"] == "processed":
                    stats["processed"] += 1

        logger.info(
            "[%s] %d fetched, %d new, %d existing, %d suppressed, %d discarded, %d too old, %d errors",
            self.source_name,
            stats["fetched"],
            stats["created"],
            stats["existing"],
            stats["suppressed"],
            stats["discarded"],
            stats["too_old"],
            stats["errors"],
        )
        return stats

    def run(self) -> dict[str, int]:
        """Collect and save. Returns ingest stats."""
        articles = self.collect()
        if not articles:
            logger.info("[%s] No articles collected", self.source_name)
            return self.save([])
        return self.save(articles)
