"""Duplicate detection for newly ingested topic articles.

Two stages, both scoped to the article's topic:

1. Checksum: another non-discarded article with the same body checksum
   (verbatim re-syndication under a different URL). Similarity 1.0.
2. Title trigrams: other articles still in ``new`` whose cleaned title is
   at least ``duplicate_similarity_threshold`` similar.

Findings are advisory. They are recorded for review and never merged
automatically.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import (
    STATUS_DISCARDED,
    STATUS_NEW,
    ArticleDuplicatePending,
    SharedArticleContent,
    TopicArticle,
)
from pipeline.errors import NotFoundError, PipelineError
from pipeline.events import log_event
from pipeline.similarity import title_similarity
from pipeline.state import set_status

logger = logging.getLogger(__name__)

METHOD_CHECKSUM = "checksum"
METHOD_TITLE = "title_similarity"

RESOLUTIONS = ("merged", "ignored")


@dataclass(frozen=True)
class DuplicateCandidate:
    original_article_id: int
    duplicate_article_id: int
    similarity_score: float
    detection_method: str


def _get_article(session: Session, topic_article_id: int) -> TopicArticle:
    article = session.get(TopicArticle, topic_article_id)
    if article is None:
        raise NotFoundError(f"Topic article {topic_article_id} not found")
    return article


def find_duplicates(
    session: Session,
    topic_article_id: int,
    thresholds: PipelineThresholds,
) -> list[DuplicateCandidate]:
    """Return duplicate candidates for an article, checksum matches first."""
    article = _get_article(session, topic_article_id)
    content = article.content
    candidates: list[DuplicateCandidate] = []
    seen: set[int] = set()

    if content.content_checksum:
        rows = session.execute(
            select(TopicArticle.id)
            .join(SharedArticleContent, TopicArticle.shared_content_id == SharedArticleContent.id)
            .where(
                TopicArticle.topic_id == article.topic_id,
                TopicArticle.id != article.id,
                TopicArticle.processing_status != STATUS_DISCARDED,
                SharedArticleContent.content_checksum == content.content_checksum,
            )
            .order_by(TopicArticle.id)
        ).scalars().all()
        for other_id in rows:
            seen.add(other_id)
            candidates.append(DuplicateCandidate(article.id, other_id, 1.0, METHOD_CHECKSUM))

    if content.title:
        rows = session.execute(
            select(TopicArticle.id, SharedArticleContent.title)
            .join(SharedArticleContent, TopicArticle.shared_content_id == SharedArticleContent.id)
            .where(
                TopicArticle.topic_id == article.topic_id,
                TopicArticle.id != article.id,
                TopicArticle.processing_status == STATUS_NEW,
                SharedArticleContent.title.is_not(None),
            )
        ).all()
        title_matches: list[DuplicateCandidate] = []
        for other_id, other_title in rows:
            if other_id in seen:
                continue
            score = title_similarity(content.title, other_title)
            if score >= thresholds.duplicate_similarity_threshold:
                title_matches.append(DuplicateCandidate(article.id, other_id, score, METHOD_TITLE))
        title_matches.sort(key=lambda c: c.similarity_score, reverse=True)
        candidates.extend(title_matches)

    return candidates


def record_candidates(session: Session, candidates: list[DuplicateCandidate]) -> int:
    """Store candidates for review, skipping pairs already recorded."""
    recorded = 0
    for candidate in candidates:
        exists = session.execute(
            select(ArticleDuplicatePending.id).where(
                ArticleDuplicatePending.original_article_id == candidate.original_article_id,
                ArticleDuplicatePending.duplicate_article_id == candidate.duplicate_article_id,
            )
        ).first()
        if exists:
            continue
        session.add(ArticleDuplicatePending(
            original_article_id=candidate.original_article_id,
            duplicate_article_id=candidate.duplicate_article_id,
            similarity_score=candidate.similarity_score,
            detection_method=candidate.detection_method,
            status="pending",
        ))
        recorded += 1

    if candidates:
        session.flush()
        log_event(
            session,
            "info",
            "Duplicate article candidates found",
            {
                "topic_article_id": candidates[0].original_article_id,
                "candidates": [
                    {
                        "duplicate_article_id": c.duplicate_article_id,
                        "similarity_score": c.similarity_score,
                        "detection_method": c.detection_method,
                    }
                    for c in candidates
                ],
                "recorded": recorded,
            },
            "find_duplicates",
        )
    return recorded


def detect_and_record(
    session: Session,
    topic_article_id: int,
    thresholds: PipelineThresholds,
) -> list[DuplicateCandidate]:
    candidates = find_duplicates(session, topic_article_id, thresholds)
    if candidates:
        record_candidates(session, candidates)
    return candidates


def resolve_duplicate(
    session: Session,
    pending_id: int,
    resolution: str,
    thresholds: PipelineThresholds,
    resolved_by: str | None = None,
) -> ArticleDuplicatePending:
    """Close a review item.

    ``merged`` keeps ``original_article_id`` and discards
    ``duplicate_article_id`` into it; ``ignored`` leaves both untouched.
    """
    if resolution not in RESOLUTIONS:
        raise PipelineError(f"Unknown resolution {resolution!r}, expected one of {RESOLUTIONS}")
    pending = session.get(ArticleDuplicatePending, pending_id)
    if pending is None:
        raise NotFoundError(f"Duplicate review item {pending_id} not found")
    if pending.status != "pending":
        raise PipelineError(f"Duplicate review item {pending_id} is already {pending.status}")

    if resolution == "merged":
        kept = _get_article(session, pending.original_article_id)
        duplicate = _get_article(session, pending.duplicate_article_id)
        merged_from = kept.metadata_dict.get("merged_from", [])
        if duplicate.id not in merged_from:
            merged_from = [*merged_from, duplicate.id]
        kept.merge_metadata({"merged_from": merged_from})
        duplicate.merge_metadata({
            "merged_with": kept.id,
            "duplicate_detection_method": pending.detection_method,
            "similarity_score": pending.similarity_score,
        })
        if duplicate.processing_status != STATUS_DISCARDED:
            set_status(
                session,
                duplicate,
                STATUS_DISCARDED,
                thresholds,
                actor=resolved_by,
                reason=f"merged into #{kept.id}",
            )

    pending.status = resolution
    pending.resolved_at = datetime.utcnow()
    session.flush()
    return pending
