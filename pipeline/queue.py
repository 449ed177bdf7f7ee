"""Content generation queue: population, worker contract and sweeps."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import (
    QUEUE_ACTIVE_STATUSES,
    QUEUE_COMPLETED,
    QUEUE_FAILED,
    QUEUE_PENDING,
    QUEUE_PROCESSING,
    STATUS_DISCARDED,
    STATUS_PROCESSED,
    ContentGenerationQueueItem,
    TopicArticle,
)
from pipeline.errors import NotFoundError, QueueStateError
from pipeline.events import log_event
from pipeline.transition import StatusChange

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Article discarded before generation"


def qualifies_for_generation(article: TopicArticle, thresholds: PipelineThresholds) -> bool:
    """Processed, good enough and local enough to turn into a story."""
    return (
        article.processing_status == STATUS_PROCESSED
        and article.content_quality_score is not None
        and article.content_quality_score >= thresholds.queue_min_quality
        and article.regional_relevance_score is not None
        and article.regional_relevance_score >= thresholds.queue_min_relevance
    )


def active_item_for(session: Session, topic_article_id: int, lock: bool = False) -> ContentGenerationQueueItem | None:
    stmt = select(ContentGenerationQueueItem).where(
        ContentGenerationQueueItem.topic_article_id == topic_article_id,
        ContentGenerationQueueItem.status.in_(QUEUE_ACTIVE_STATUSES),
    )
    if lock:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalars().first()


def enqueue(
    session: Session,
    article: TopicArticle,
    thresholds: PipelineThresholds,
) -> ContentGenerationQueueItem | None:
    """Queue an article unless it already has a pending or processing item.

    The partial unique index on active items backs this check up when two
    writers race; the loser gets an IntegrityError at flush.
    """
    if active_item_for(session, article.id, lock=True) is not None:
        logger.debug("Article %s already queued, skipping", article.id)
        return None

    topic = article.topic
    item = ContentGenerationQueueItem(
        topic_article_id=article.id,
        status=QUEUE_PENDING,
        attempts=0,
        max_attempts=thresholds.max_attempts,
        slidetype=(topic.default_slidetype if topic else None) or thresholds.default_slidetype,
        tone=(topic.default_tone if topic else None) or thresholds.default_tone,
        writing_style=(topic.default_writing_style if topic else None) or thresholds.default_writing_style,
        audience_expertise=(
            (topic.default_audience_expertise if topic else None) or thresholds.default_audience_expertise
        ),
        ai_provider=(topic.default_ai_provider if topic else None) or thresholds.default_ai_provider,
    )
    session.add(item)
    session.flush()
    log_event(
        session,
        "info",
        "Content generation queued",
        {
            "queue_item_id": item.id,
            "topic_article_id": article.id,
            "topic_id": article.topic_id,
            "content_quality_score": article.content_quality_score,
            "regional_relevance_score": article.regional_relevance_score,
        },
        "populate_queue",
    )
    return item


def populate_queue(session: Session, change: StatusChange, thresholds: PipelineThresholds) -> None:
    """After-transition handler: queue articles that become processed."""
    if change.target != STATUS_PROCESSED:
        return
    if not qualifies_for_generation(change.article, thresholds):
        return
    item = enqueue(session, change.article, thresholds)
    if item is not None:
        change.queued_item_id = item.id


def cancel_generation(session: Session, change: StatusChange, thresholds: PipelineThresholds) -> None:
    """After-transition handler: a discarded article keeps no active queue item."""
    if not change.entering_discard:
        return
    article = change.article
    active = session.execute(
        select(ContentGenerationQueueItem)
        .where(
            ContentGenerationQueueItem.topic_article_id == article.id,
            ContentGenerationQueueItem.status.in_(QUEUE_ACTIVE_STATUSES),
        )
        .with_for_update()
    ).scalars().all()
    if not active:
        return

    now = datetime.utcnow()
    for item in active:
        item.status = QUEUE_FAILED
        item.error_message = CANCELLED_MESSAGE
        item.completed_at = now
        item.updated_at = now
    log_event(
        session,
        "info",
        "Content generation cancelled",
        {
            "topic_article_id": article.id,
            "topic_id": article.topic_id,
            "queue_item_ids": [item.id for item in active],
            "reason": change.reason,
        },
        "cancel_generation",
    )


# --- Worker contract ---


def get_item(session: Session, item_id: int, lock: bool = False) -> ContentGenerationQueueItem:
    stmt = select(ContentGenerationQueueItem).where(ContentGenerationQueueItem.id == item_id)
    if lock:
        stmt = stmt.with_for_update()
    item = session.execute(stmt).scalar_one_or_none()
    if item is None:
        raise NotFoundError(f"Queue item {item_id} not found")
    return item


def claim_next_item(session: Session) -> ContentGenerationQueueItem | None:
    """Move the oldest pending item to processing and return it.

    Each claim uses up one attempt, including claims later reset by the
    stall sweep.
    """
    stmt = (
        select(ContentGenerationQueueItem)
        .where(ContentGenerationQueueItem.status == QUEUE_PENDING)
        .order_by(ContentGenerationQueueItem.created_at, ContentGenerationQueueItem.id)
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    item = session.execute(stmt).scalar_one_or_none()
    if item is None:
        return None
    now = datetime.utcnow()
    item.status = QUEUE_PROCESSING
    item.attempts = (item.attempts or 0) + 1
    item.started_at = now
    item.updated_at = now
    session.flush()
    return item


def complete_item(session: Session, item_id: int) -> ContentGenerationQueueItem:
    item = get_item(session, item_id, lock=True)
    if item.status != QUEUE_PROCESSING:
        raise QueueStateError(f"Queue item {item_id} is {item.status}, not processing")
    now = datetime.utcnow()
    item.status = QUEUE_COMPLETED
    item.completed_at = now
    item.updated_at = now
    item.error_message = None
    session.flush()
    return item


def fail_item(session: Session, item_id: int, error_message: str) -> ContentGenerationQueueItem:
    """Record a generation failure; retry until max_attempts, then fail for good.

    The attempt was already counted when the item was claimed.
    """
    item = get_item(session, item_id, lock=True)
    if item.status != QUEUE_PROCESSING:
        raise QueueStateError(f"Queue item {item_id} is {item.status}, not processing")
    now = datetime.utcnow()
    item.error_message = error_message
    item.updated_at = now
    if item.attempts >= item.max_attempts:
        item.status = QUEUE_FAILED
        item.completed_at = now
    else:
        item.status = QUEUE_PENDING
        item.started_at = None
    session.flush()
    return item


def requeue_item(session: Session, item_id: int) -> ContentGenerationQueueItem:
    """Manually send a failed item back to pending with a fresh attempt budget."""
    item = get_item(session, item_id, lock=True)
    if item.status != QUEUE_FAILED:
        raise QueueStateError(f"Queue item {item_id} is {item.status}, only failed items can be requeued")
    article = session.get(TopicArticle, item.topic_article_id)
    if article is not None and article.processing_status == STATUS_DISCARDED:
        raise QueueStateError(f"Article {item.topic_article_id} is discarded, cannot requeue its item")
    if active_item_for(session, item.topic_article_id) is not None:
        raise QueueStateError(f"Article {item.topic_article_id} already has an active queue item")
    item.status = QUEUE_PENDING
    item.attempts = 0
    item.error_message = None
    item.started_at = None
    item.completed_at = None
    item.updated_at = datetime.utcnow()
    session.flush()
    return item


# --- Sweeps ---


def reset_stalled_items(session: Session, thresholds: PipelineThresholds) -> dict[str, int]:
    """Recover items left in processing by a crashed worker.

    Only items whose last update is older than the staleness window are
    touched, so a worker that is still busy keeps its claim.
    """
    cutoff = datetime.utcnow() - timedelta(minutes=thresholds.stale_processing_minutes)
    stalled = session.execute(
        select(ContentGenerationQueueItem)
        .where(
            ContentGenerationQueueItem.status == QUEUE_PROCESSING,
            ContentGenerationQueueItem.updated_at < cutoff,
        )
        .with_for_update(skip_locked=True)
    ).scalars().all()

    reset = failed = 0
    now = datetime.utcnow()
    for item in stalled:
        item.updated_at = now
        item.started_at = None
        if (item.attempts or 0) >= item.max_attempts:
            item.status = QUEUE_FAILED
            item.completed_at = now
            item.error_message = item.error_message or "Exceeded max attempts while stalled"
            failed += 1
        else:
            item.status = QUEUE_PENDING
            reset += 1

    if stalled:
        log_event(
            session,
            "info",
            "Reset stalled queue items",
            {
                "reset_count": reset,
                "failed_count": failed,
                "stale_minutes": thresholds.stale_processing_minutes,
                "item_ids": [item.id for item in stalled],
            },
            "reset_stalled_items",
        )
    session.flush()
    return {"reset": reset, "failed": failed}


def purge_failed_items(session: Session, thresholds: PipelineThresholds) -> int:
    """Delete permanently failed items past the retention window."""
    cutoff = datetime.utcnow() - timedelta(hours=thresholds.failed_retention_hours)
    result = session.execute(
        delete(ContentGenerationQueueItem).where(
            ContentGenerationQueueItem.status == QUEUE_FAILED,
            ContentGenerationQueueItem.updated_at < cutoff,
        )
    )
    purged = result.rowcount or 0
    if purged:
        log_event(
            session,
            "info",
            "Purged failed queue items",
            {"purged_count": purged, "retention_hours": thresholds.failed_retention_hours},
            "purge_failed_items",
        )
    return purged
