"""API routes for topicfeed."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select

from config import THRESHOLDS
from db.database import get_session
from db.models import (
    ArticleDuplicatePending,
    ContentGenerationQueueItem,
    DiscardedArticle,
    SystemLog,
    TopicArticle,
)
from pipeline.duplicates import resolve_duplicate
from pipeline.errors import InvalidTransitionError, NotFoundError, PipelineError, QueueStateError
from pipeline.ingest import ingest_article
from pipeline.moderation import apply_moderation, approve_article, get_topic_article, moderation_result
from pipeline.queue import requeue_item

router = APIRouter(prefix="/api")


class ArticleIn(BaseModel):
    url: str = Field(..., min_length=1)
    title: str | None = None
    body: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    topic_id: int
    source_id: int | None = None
    regional_relevance_score: int | None = Field(default=None, ge=0, le=100)
    content_quality_score: int | None = Field(default=None, ge=0, le=100)
    import_metadata: dict[str, Any] = Field(default_factory=dict)


class ModerationIn(BaseModel):
    action: str = Field(..., pattern="^(discard|restore)$")
    reason: str | None = None
    moderator: str | None = None
    unsuppress: bool = False


class ResolutionIn(BaseModel):
    resolution: str = Field(..., pattern="^(merged|ignored)$")
    resolved_by: str | None = None


def _raise_http(e: PipelineError) -> None:
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidTransitionError, QueueStateError)):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


@router.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""
    return {"status": "ok", "service": "topicfeed", "thresholds_version": THRESHOLDS.version}


@router.post("/articles/ingest")
def ingest(payload: ArticleIn) -> dict[str, Any]:
    """Scraper entry point. Always 200; failures come back as success=false."""
    session = get_session()
    try:
        return ingest_article(session, payload.model_dump(), THRESHOLDS)
    finally:
        session.close()


@router.post("/topics/{topic_id}/articles/{topic_article_id}/moderate")
def moderate(topic_id: int, topic_article_id: int, payload: ModerationIn) -> dict[str, Any]:
    """Discard or restore an article on behalf of a moderator."""
    session = get_session()
    try:
        change = apply_moderation(
            session,
            topic_id,
            topic_article_id,
            payload.action,
            THRESHOLDS,
            payload.reason,
            payload.moderator,
            payload.unsuppress,
        )
        session.commit()
        return moderation_result(topic_article_id, payload.action, change)
    except PipelineError as e:
        session.rollback()
        _raise_http(e)
    finally:
        session.close()


@router.post("/articles/{topic_article_id}/approve")
def approve(topic_article_id: int, moderator: str | None = Query(default=None)) -> dict[str, Any]:
    """Promote a new article to processed."""
    session = get_session()
    try:
        article = get_topic_article(session, topic_article_id)
        change = approve_article(session, article, THRESHOLDS, moderator)
        session.commit()
        return {
            "success": True,
            "topic_article_id": topic_article_id,
            "status": change.target,
            "reason": change.reason,
            "queued_item_id": change.queued_item_id,
        }
    except PipelineError as e:
        session.rollback()
        _raise_http(e)
    finally:
        session.close()


@router.get("/topics/{topic_id}/articles")
def list_topic_articles(
    topic_id: int,
    status: str | None = Query(default=None, pattern="^(new|processed|discarded)$"),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[dict[str, Any]]:
    """List a topic's articles, newest first."""
    session = get_session()
    try:
        stmt = select(TopicArticle).where(TopicArticle.topic_id == topic_id)
        if status:
            stmt = stmt.where(TopicArticle.processing_status == status)
        stmt = stmt.order_by(TopicArticle.created_at.desc(), TopicArticle.id.desc()).limit(limit)
        return [_serialize_article(a) for a in session.execute(stmt).scalars().all()]
    finally:
        session.close()


@router.get("/topics/{topic_id}/suppressed")
def list_suppressed(
    topic_id: int,
    limit: int = Query(default=100, ge=1, le=500),
) -> list[dict[str, Any]]:
    """The topic's suppression ledger, most recent first."""
    session = get_session()
    try:
        entries = session.execute(
            select(DiscardedArticle)
            .where(DiscardedArticle.topic_id == topic_id)
            .order_by(DiscardedArticle.discarded_at.desc())
            .limit(limit)
        ).scalars().all()
        return [
            {
                "normalized_url": e.normalized_url,
                "title": e.title,
                "discarded_by": e.discarded_by,
                "discarded_reason": e.discarded_reason,
                "discarded_at": e.discarded_at.isoformat() if e.discarded_at else None,
            }
            for e in entries
        ]
    finally:
        session.close()


@router.get("/duplicates")
def list_duplicates(
    status: str = Query(default="pending", pattern="^(pending|merged|ignored)$"),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[dict[str, Any]]:
    """Duplicate review queue, strongest matches first."""
    session = get_session()
    try:
        rows = session.execute(
            select(ArticleDuplicatePending)
            .where(ArticleDuplicatePending.status == status)
            .order_by(ArticleDuplicatePending.similarity_score.desc(), ArticleDuplicatePending.id)
            .limit(limit)
        ).scalars().all()
        return [
            {
                "id": d.id,
                "original_article_id": d.original_article_id,
                "duplicate_article_id": d.duplicate_article_id,
                "similarity_score": d.similarity_score,
                "detection_method": d.detection_method,
                "status": d.status,
                "created_at": d.created_at.isoformat() if d.created_at else None,
            }
            for d in rows
        ]
    finally:
        session.close()


@router.post("/duplicates/{pending_id}/resolve")
def resolve(pending_id: int, payload: ResolutionIn) -> dict[str, Any]:
    session = get_session()
    try:
        pending = resolve_duplicate(session, pending_id, payload.resolution, THRESHOLDS, payload.resolved_by)
        session.commit()
        return {"success": True, "id": pending.id, "status": pending.status}
    except PipelineError as e:
        session.rollback()
        _raise_http(e)
    finally:
        session.close()


@router.get("/queue")
def list_queue(
    status: str | None = Query(default=None, pattern="^(pending|processing|completed|failed)$"),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[dict[str, Any]]:
    """Content generation queue, oldest first."""
    session = get_session()
    try:
        stmt = select(ContentGenerationQueueItem)
        if status:
            stmt = stmt.where(ContentGenerationQueueItem.status == status)
        stmt = stmt.order_by(ContentGenerationQueueItem.created_at, ContentGenerationQueueItem.id).limit(limit)
        return [_serialize_queue_item(i) for i in session.execute(stmt).scalars().all()]
    finally:
        session.close()


@router.post("/queue/{item_id}/requeue")
def requeue(item_id: int) -> dict[str, Any]:
    """Manually retry a permanently failed item."""
    session = get_session()
    try:
        item = requeue_item(session, item_id)
        session.commit()
        return {"success": True, **_serialize_queue_item(item)}
    except PipelineError as e:
        session.rollback()
        _raise_http(e)
    finally:
        session.close()


@router.get("/logs")
def list_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    function_name: str | None = Query(default=None),
) -> list[dict[str, Any]]:
    """Audit trail, newest first."""
    session = get_session()
    try:
        stmt = select(SystemLog)
        if function_name:
            stmt = stmt.where(SystemLog.function_name == function_name)
        stmt = stmt.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).limit(limit)
        return [
            {
                "id": log.id,
                "level": log.level,
                "message": log.message,
                "context": log.context_dict,
                "function_name": log.function_name,
                "created_at": log.created_at.isoformat() if log.created_at else None,
            }
            for log in session.execute(stmt).scalars().all()
        ]
    finally:
        session.close()


def _serialize_article(article: TopicArticle) -> dict[str, Any]:
    """Serialize a TopicArticle (with its shared content) to a dict."""
    content = article.content
    return {
        "id": article.id,
        "topic_id": article.topic_id,
        "source_id": article.source_id,
        "url": content.url if content else None,
        "normalized_url": content.normalized_url if content else None,
        "title": content.title if content else None,
        "author": content.author if content else None,
        "word_count": content.word_count if content else 0,
        "processing_status": article.processing_status,
        "discard_reason": article.discard_reason,
        "regional_relevance_score": article.regional_relevance_score,
        "content_quality_score": article.content_quality_score,
        "originality_confidence": article.originality_confidence,
        "import_metadata": article.metadata_dict,
        "published_at": content.published_at.isoformat() if content and content.published_at else None,
        "created_at": article.created_at.isoformat() if article.created_at else None,
    }


def _serialize_queue_item(item: ContentGenerationQueueItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "topic_article_id": item.topic_article_id,
        "status": item.status,
        "attempts": item.attempts,
        "max_attempts": item.max_attempts,
        "error_message": item.error_message,
        "slidetype": item.slidetype,
        "tone": item.tone,
        "writing_style": item.writing_style,
        "audience_expertise": item.audience_expertise,
        "ai_provider": item.ai_provider,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "started_at": item.started_at.isoformat() if item.started_at else None,
        "completed_at": item.completed_at.isoformat() if item.completed_at else None,
    }
