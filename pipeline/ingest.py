"""Article ingestion: the single entry point scrapers call per article.

Order of operations for one payload:

1. Normalize the URL and upsert the shared content row.
2. Suppression ledger hit for the topic: store as discarded, stop. No
   scoring happens for URLs the topic has already thrown away.
3. Already linked to the topic: refresh last_seen_at and keep its status.
4. Otherwise link it, score it, run the gate, look for duplicates and,
   when nothing looks like a duplicate, promote it to processed.
"""

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import (
    STATUS_DISCARDED,
    STATUS_NEW,
    STATUS_PROCESSED,
    ContentSource,
    SharedArticleContent,
    Topic,
    TopicArticle,
)
from pipeline import scoring, suppression
from pipeline.content import content_checksum, count_words, reading_time_minutes
from pipeline.duplicates import detect_and_record
from pipeline.errors import NotFoundError, PipelineError
from pipeline.events import log_event
from pipeline.gate import warn_competing_regions
from pipeline.state import set_status
from pipeline.urls import extract_domain, normalize_url

logger = logging.getLogger(__name__)

SUPPRESSED_REASON = "Previously discarded for this topic"


def _parse_metadata(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str) and raw:
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, dict):
                return parsed
        except (json.JSONDecodeError, TypeError):
            pass
    return {}


def _upsert_content(session: Session, data: dict[str, Any], normalized_url: str) -> SharedArticleContent:
    content = session.execute(
        select(SharedArticleContent).where(SharedArticleContent.normalized_url == normalized_url)
    ).scalar_one_or_none()
    now = datetime.utcnow()
    if content is not None:
        content.last_seen_at = now
        return content

    body = data.get("body")
    word_count = count_words(body)
    content = SharedArticleContent(
        url=data["url"].strip(),
        normalized_url=normalized_url,
        title=data.get("title"),
        body=body,
        author=data.get("author"),
        published_at=data.get("published_at"),
        word_count=word_count,
        reading_time_minutes=reading_time_minutes(word_count),
        content_checksum=content_checksum(body),
        source_domain=extract_domain(data["url"]),
        created_at=now,
        last_seen_at=now,
    )
    session.add(content)
    session.flush()
    return content


def _serialize_result(article: TopicArticle, **extra: Any) -> dict[str, Any]:
    result = {
        "success": True,
        "topic_article_id": article.id,
        "shared_content_id": article.shared_content_id,
        "normalized_url": article.content.normalized_url if article.content else None,
        "status": article.processing_status,
        "discard_reason": article.discard_reason,
        "regional_relevance_score": article.regional_relevance_score,
        "content_quality_score": article.content_quality_score,
    }
    result.update(extra)
    return result


def _ingest(session: Session, data: dict[str, Any], thresholds: PipelineThresholds) -> dict[str, Any]:
    topic = session.get(Topic, data.get("topic_id"))
    if topic is None:
        raise NotFoundError(f"Topic {data.get('topic_id')} not found")

    source = None
    if data.get("source_id") is not None:
        source = session.get(ContentSource, data["source_id"])
        if source is None:
            raise NotFoundError(f"Source {data['source_id']} not found")

    normalized_url = normalize_url(data.get("url"))
    if not normalized_url:
        raise PipelineError("Article URL is required")

    content = _upsert_content(session, data, normalized_url)
    existing = session.execute(
        select(TopicArticle).where(
            TopicArticle.topic_id == topic.id,
            TopicArticle.shared_content_id == content.id,
        )
    ).scalar_one_or_none()

    if suppression.is_suppressed(session, topic.id, normalized_url):
        article = existing
        if article is None:
            article = TopicArticle(topic=topic, content=content, source=source,
                                   import_metadata=json.dumps(_parse_metadata(data.get("import_metadata"))))
            set_status(session, article, STATUS_DISCARDED, thresholds,
                       reason=SUPPRESSED_REASON, inserting=True)
        elif article.processing_status != STATUS_DISCARDED:
            set_status(session, article, STATUS_DISCARDED, thresholds, reason=SUPPRESSED_REASON)
        log_event(
            session,
            "info",
            "Article suppressed on re-ingestion",
            {
                "topic_article_id": article.id,
                "topic_id": topic.id,
                "normalized_url": normalized_url,
                "url": data.get("url"),
            },
            "ingest_article",
        )
        return _serialize_result(article, created=existing is None, suppressed=True, duplicates=[])

    if existing is not None:
        existing.updated_at = datetime.utcnow()
        logger.debug("Article already linked to topic %s: %s", topic.id, normalized_url)
        return _serialize_result(existing, created=False, suppressed=False, duplicates=[])

    metadata = _parse_metadata(data.get("import_metadata"))
    relevance = data.get("regional_relevance_score")
    if relevance is None and metadata.get("regional_relevance_score") is None:
        relevance = scoring.relevance_score(
            content.title, content.body, topic, thresholds.competing_region_penalty
        )
    quality = data.get("content_quality_score")
    if quality is None:
        quality = scoring.quality_score(
            content.title, content.body, content.word_count, content.author, content.published_at
        )

    article = TopicArticle(
        topic=topic,
        content=content,
        source=source,
        regional_relevance_score=relevance,
        content_quality_score=quality,
        import_metadata=json.dumps(metadata, default=str),
    )
    change = set_status(session, article, STATUS_NEW, thresholds, inserting=True)
    warn_competing_regions(session, article, content.title)

    duplicates = []
    if change.target == STATUS_NEW:
        duplicates = detect_and_record(session, article.id, thresholds)
        if duplicates:
            article.merge_metadata({
                "duplicates_found": len(duplicates),
                "duplicate_check_completed": True,
                "checked_at": datetime.utcnow().isoformat(),
            })
        elif thresholds.auto_promote:
            change = set_status(session, article, STATUS_PROCESSED, thresholds)

    return _serialize_result(
        article,
        created=True,
        suppressed=False,
        duplicates=[
            {
                "duplicate_article_id": d.duplicate_article_id,
                "similarity_score": d.similarity_score,
                "detection_method": d.detection_method,
            }
            for d in duplicates
        ],
        queued_item_id=change.queued_item_id,
    )


def ingest_article(session: Session, data: dict[str, Any], thresholds: PipelineThresholds) -> dict[str, Any]:
    """Ingest one scraped article and commit.

    Never raises: failures roll back this article only and come back as
    ``{"success": False, "error": ...}`` so a batch keeps going.
    """
    try:
        result = _ingest(session, data, thresholds)
        session.commit()
        return result
    except IntegrityError as e:
        session.rollback()
        logger.debug("Concurrent ingest of %s lost the race: %s", data.get("url"), e)
        return {"success": False, "error": "Article was ingested concurrently", "conflict": True}
    except Exception as e:
        session.rollback()
        logger.exception("Error ingesting article %s for topic %s", data.get("url"), data.get("topic_id"))
        return {"success": False, "error": str(e)}
