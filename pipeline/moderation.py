"""Human moderation: discard, restore and approve topic articles."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import STATUS_DISCARDED, STATUS_NEW, STATUS_PROCESSED, TopicArticle
from pipeline import suppression
from pipeline.errors import NotFoundError, PipelineError
from pipeline.events import log_event
from pipeline.state import set_status
from pipeline.transition import StatusChange

logger = logging.getLogger(__name__)

DEFAULT_MODERATOR = "moderator"
ACTIONS = ("discard", "restore")


def get_topic_article(session: Session, topic_article_id: int, topic_id: int | None = None) -> TopicArticle:
    article = session.get(TopicArticle, topic_article_id)
    if article is None or (topic_id is not None and article.topic_id != topic_id):
        raise NotFoundError(f"Topic article {topic_article_id} not found")
    return article


def discard_article(
    session: Session,
    article: TopicArticle,
    thresholds: PipelineThresholds,
    reason: str | None = None,
    moderator: str | None = None,
) -> StatusChange:
    moderator = moderator or DEFAULT_MODERATOR
    reason = reason or "Discarded by moderator"
    if article.processing_status == STATUS_DISCARDED:
        # Re-discarding refreshes the ledger entry with the human decision
        suppression.discard(
            session,
            article.topic_id,
            article.content.normalized_url,
            article.content.title,
            reason,
            discarded_by=moderator,
        )
        article.discard_reason = reason
    return set_status(session, article, STATUS_DISCARDED, thresholds, actor=moderator, reason=reason)


def restore_article(
    session: Session,
    article: TopicArticle,
    thresholds: PipelineThresholds,
    moderator: str | None = None,
    unsuppress: bool = False,
) -> StatusChange:
    """Move a discarded article back to new.

    Without ``unsuppress`` the suppression ledger still applies and a
    suppressed URL stays discarded.
    """
    moderator = moderator or DEFAULT_MODERATOR
    if article.processing_status != STATUS_DISCARDED:
        raise PipelineError(f"Article {article.id} is {article.processing_status}, not discarded")
    if unsuppress:
        released = suppression.release(session, article.topic_id, article.content.normalized_url)
        if released:
            log_event(
                session,
                "info",
                "Suppression released by moderator",
                {
                    "topic_article_id": article.id,
                    "topic_id": article.topic_id,
                    "normalized_url": article.content.normalized_url,
                    "moderator": moderator,
                },
                "restore_article",
            )
    return set_status(session, article, STATUS_NEW, thresholds, actor=moderator)


def approve_article(
    session: Session,
    article: TopicArticle,
    thresholds: PipelineThresholds,
    moderator: str | None = None,
) -> StatusChange:
    """Promote a new article to processed, queueing it for generation."""
    return set_status(session, article, STATUS_PROCESSED, thresholds, actor=moderator or DEFAULT_MODERATOR)


def apply_moderation(
    session: Session,
    topic_id: int,
    topic_article_id: int,
    action: str,
    thresholds: PipelineThresholds,
    reason: str | None = None,
    moderator: str | None = None,
    unsuppress: bool = False,
) -> StatusChange:
    """Run one moderator action without committing. Raises PipelineError."""
    if action not in ACTIONS:
        raise PipelineError(f"Unknown action {action!r}, expected one of {ACTIONS}")
    article = get_topic_article(session, topic_article_id, topic_id)
    if action == "discard":
        return discard_article(session, article, thresholds, reason, moderator)
    return restore_article(session, article, thresholds, moderator, unsuppress)


def moderation_result(topic_article_id: int, action: str, change: StatusChange) -> dict[str, Any]:
    return {
        "success": True,
        "topic_article_id": topic_article_id,
        "action": action,
        "status": change.target,
        "vetoed": change.vetoed,
        "reason": change.reason,
    }


def moderate_article(
    session: Session,
    topic_id: int,
    topic_article_id: int,
    action: str,
    thresholds: PipelineThresholds,
    reason: str | None = None,
    moderator: str | None = None,
    unsuppress: bool = False,
) -> dict[str, Any]:
    """Apply a moderator action and commit. Never raises."""
    try:
        change = apply_moderation(
            session, topic_id, topic_article_id, action, thresholds, reason, moderator, unsuppress
        )
        session.commit()
        return moderation_result(topic_article_id, action, change)
    except Exception as e:
        session.rollback()
        logger.exception("Moderation %s failed for article %s", action, topic_article_id)
        return {"success": False, "error": str(e)}
