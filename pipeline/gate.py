"""Relevance and quality gate.

Runs before a status is stored. A failing article is never refused: it is
demoted to ``discarded`` with a readable reason and a structured rejection
object merged into its import metadata.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import STATUS_DISCARDED, STATUS_NEW, Topic, TopicArticle
from pipeline.events import log_event
from pipeline.scoring import competing_region_mentions
from pipeline.transition import StatusChange

logger = logging.getLogger(__name__)


def _coerce_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def adopt_metadata_score(article: TopicArticle) -> None:
    """Copy a scraper-supplied relevance score from import metadata onto the row."""
    score = _coerce_int(article.metadata_dict.get("regional_relevance_score"))
    if score is not None:
        article.regional_relevance_score = score


def min_word_count_for(topic: Topic | None, thresholds: PipelineThresholds) -> int:
    if topic is not None and topic.min_word_count is not None:
        return topic.min_word_count
    return thresholds.min_word_count


def evaluate(
    article: TopicArticle,
    status: str,
    thresholds: PipelineThresholds,
) -> dict[str, Any] | None:
    """Return a rejection object if ``article`` may not hold ``status``."""
    if status == STATUS_DISCARDED:
        return None

    word_count = article.content.word_count if article.content else 0
    minimum = min_word_count_for(article.topic, thresholds)
    if word_count < minimum:
        return {
            "rejection_reason": "insufficient_word_count",
            "word_count": word_count,
            "min_word_count": minimum,
            "thresholds_version": thresholds.version,
            "discard_reason": f"Insufficient word count: {word_count} words (minimum {minimum})",
        }

    source_type = article.source.source_type if article.source else None
    threshold = thresholds.relevance_threshold_for(source_type)
    score = article.regional_relevance_score
    if status == STATUS_NEW and score is not None and score < threshold:
        return {
            "rejection_reason": "insufficient_regional_relevance",
            "relevance_score": score,
            "min_threshold": threshold,
            "source_type": source_type or "national",
            "thresholds_version": thresholds.version,
            "discard_reason": (
                f"Insufficient regional relevance: score {score} "
                f"(minimum {threshold} for {source_type or 'national'} sources)"
            ),
        }
    return None


def enforce_quality_gate(
    session: Session,
    change: StatusChange,
    thresholds: PipelineThresholds,
) -> None:
    """Before-transition handler: demote articles that fail the gate."""
    article = change.article
    adopt_metadata_score(article)
    if change.target == STATUS_DISCARDED:
        return

    rejection = evaluate(article, change.target, thresholds)
    if rejection is None:
        return

    reason = rejection.pop("discard_reason")
    article.merge_metadata(rejection)
    change.target = STATUS_DISCARDED
    change.reason = reason
    change.rejection = rejection

    message = (
        "Article rejected: insufficient word count"
        if rejection["rejection_reason"] == "insufficient_word_count"
        else "Article rejected: insufficient regional relevance"
    )
    log_event(
        session,
        "info",
        message,
        {"topic_article_id": article.id, "topic_id": article.topic_id, **rejection},
        "enforce_quality_gate",
    )


def warn_competing_regions(session: Session, article: TopicArticle, title: str | None) -> list[str]:
    """Soft check: record competing regions named in the title, never block."""
    topic = article.topic
    if topic is None:
        return []
    found = competing_region_mentions(title, topic)
    if found:
        article.merge_metadata({"competing_region_mentions": found})
        log_event(
            session,
            "warning",
            "Competing region mentioned in title",
            {
                "topic_article_id": article.id,
                "topic_id": topic.id,
                "title": title,
                "competing_regions": found,
            },
            "warn_competing_regions",
        )
    return found
