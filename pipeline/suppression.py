"""Suppression ledger: durable per-topic memory of discarded URLs."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import STATUS_DISCARDED, DiscardedArticle
from pipeline.events import log_event
from pipeline.transition import StatusChange

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def discard(
    session: Session,
    topic_id: int,
    normalized_url: str,
    title: str | None,
    reason: str | None,
    discarded_by: str | None = None,
) -> None:
    """Upsert a ledger entry. A repeat discard refreshes time, reason and actor."""
    now = datetime.utcnow()
    values = {
        "topic_id": topic_id,
        "normalized_url": normalized_url,
        "title": title,
        "discarded_by": discarded_by,
        "discarded_reason": reason,
        "discarded_at": now,
    }
    dialect = session.get_bind().dialect.name
    insert_fn = _UPSERT_INSERTS.get(dialect)

    if insert_fn is not None:
        stmt = insert_fn(DiscardedArticle).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["topic_id", "normalized_url"],
            set_={
                "discarded_at": stmt.excluded.discarded_at,
                "discarded_reason": stmt.excluded.discarded_reason,
                "discarded_by": stmt.excluded.discarded_by,
            },
        )
        session.execute(stmt)
        return

    # Dialects without ON CONFLICT: lock and update, else insert
    existing = session.execute(
        select(DiscardedArticle)
        .where(DiscardedArticle.topic_id == topic_id, DiscardedArticle.normalized_url == normalized_url)
        .with_for_update()
    ).scalar_one_or_none()
    if existing is None:
        session.add(DiscardedArticle(**values))
    else:
        session.execute(
            update(DiscardedArticle)
            .where(DiscardedArticle.id == existing.id)
            .values(discarded_at=now, discarded_reason=reason, discarded_by=discarded_by)
        )
    session.flush()


def get_entry(session: Session, topic_id: int, normalized_url: str | None) -> DiscardedArticle | None:
    if not normalized_url:
        return None
    return session.execute(
        select(DiscardedArticle)
        .where(
            DiscardedArticle.topic_id == topic_id,
            DiscardedArticle.normalized_url == normalized_url,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def is_suppressed(session: Session, topic_id: int, normalized_url: str | None) -> bool:
    """True if the topic has discarded this normalized URL."""
    return get_entry(session, topic_id, normalized_url) is not None


def release(session: Session, topic_id: int, normalized_url: str) -> bool:
    """Delete a ledger entry so the URL may be restored. Returns True if one existed."""
    result = session.execute(
        delete(DiscardedArticle).where(
            DiscardedArticle.topic_id == topic_id,
            DiscardedArticle.normalized_url == normalized_url,
        )
    )
    return (result.rowcount or 0) > 0


def cleanup_ledger(session: Session, retention_days: int) -> int:
    """Drop ledger entries older than the retention window."""
    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    result = session.execute(delete(DiscardedArticle).where(DiscardedArticle.discarded_at < cutoff))
    removed = result.rowcount or 0
    if removed:
        log_event(
            session,
            "info",
            "Cleaned up suppression ledger",
            {"removed_count": removed, "retention_days": retention_days},
            "cleanup_ledger",
        )
    return removed


# --- Transition handlers ---


def veto_reactivation(session: Session, change: StatusChange, thresholds: PipelineThresholds) -> None:
    """Before-transition handler: a suppressed URL stays discarded."""
    if not change.leaving_discard:
        return
    article = change.article
    normalized_url = article.content.normalized_url if article.content else None
    if not is_suppressed(session, article.topic_id, normalized_url):
        return

    change.target = STATUS_DISCARDED
    change.vetoed = True
    log_event(
        session,
        "info",
        "Reactivation of suppressed article prevented",
        {
            "topic_article_id": article.id,
            "topic_id": article.topic_id,
            "normalized_url": normalized_url,
            "requested_status": change.requested,
            "actor": change.actor,
        },
        "veto_reactivation",
    )


def auto_suppress(session: Session, change: StatusChange, thresholds: PipelineThresholds) -> None:
    """After-transition handler: every discard lands in the ledger."""
    if not change.entering_discard:
        return
    article = change.article
    content = article.content
    if content is None or not content.normalized_url:
        return

    # A system discard never overwrites an existing entry
    if change.actor is None and is_suppressed(session, article.topic_id, content.normalized_url):
        return

    discard(
        session,
        article.topic_id,
        content.normalized_url,
        content.title,
        change.reason,
        discarded_by=change.actor,
    )
    log_event(
        session,
        "info",
        "Article auto-suppressed",
        {
            "topic_article_id": article.id,
            "topic_id": article.topic_id,
            "normalized_url": content.normalized_url,
            "reason": change.reason,
            "discarded_by": change.actor,
        },
        "auto_suppress",
    )
