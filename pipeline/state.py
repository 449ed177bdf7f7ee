"""Processing state machine for topic articles.

All status writes go through ``set_status``. Side effects are explicit
handlers run around the write instead of database triggers:

    before: veto_reactivation -> enforce_quality_gate   (may rewrite target)
    after:  auto_suppress -> cancel_generation -> populate_queue   (react to the result)

States: new -> processed, new/processed -> discarded. Leaving discarded is
a restoration and is vetoed while the URL sits in the suppression ledger.
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from config import PipelineThresholds
from db.models import (
    PROCESSING_STATUSES,
    STATUS_DISCARDED,
    STATUS_NEW,
    STATUS_PROCESSED,
    TopicArticle,
)
from pipeline.errors import InvalidTransitionError
from pipeline.gate import enforce_quality_gate
from pipeline.queue import cancel_generation, populate_queue
from pipeline.suppression import auto_suppress, veto_reactivation
from pipeline.transition import StatusChange

logger = logging.getLogger(__name__)

TransitionHandler = Callable[[Session, StatusChange, PipelineThresholds], None]

# previous status (None = insert) -> statuses it may request
ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({STATUS_NEW, STATUS_DISCARDED}),
    STATUS_NEW: frozenset({STATUS_NEW, STATUS_PROCESSED, STATUS_DISCARDED}),
    STATUS_PROCESSED: frozenset({STATUS_PROCESSED, STATUS_DISCARDED}),
    STATUS_DISCARDED: frozenset({STATUS_DISCARDED, STATUS_NEW, STATUS_PROCESSED}),
}

BEFORE_TRANSITION: list[TransitionHandler] = [veto_reactivation, enforce_quality_gate]
AFTER_TRANSITION: list[TransitionHandler] = [auto_suppress, cancel_generation, populate_queue]


def set_status(
    session: Session,
    article: TopicArticle,
    status: str,
    thresholds: PipelineThresholds,
    actor: str | None = None,
    reason: str | None = None,
    inserting: bool = False,
) -> StatusChange:
    """Request a processing_status and run the transition handlers.

    The stored status may differ from the requested one: the gate can
    demote to discarded and the suppression ledger can veto a restore.
    Inspect the returned change for what actually happened.
    """
    if status not in PROCESSING_STATUSES:
        raise InvalidTransitionError(str(article.processing_status), status)

    previous = None if inserting else article.processing_status
    if status not in ALLOWED_TRANSITIONS.get(previous, frozenset()):
        raise InvalidTransitionError(str(previous), status)

    if article.id is None:
        session.add(article)
        session.flush()

    change = StatusChange(
        article=article,
        previous=previous,
        requested=status,
        target=status,
        actor=actor,
        reason=reason,
    )

    for handler in BEFORE_TRANSITION:
        handler(session, change, thresholds)

    article.processing_status = change.target
    article.updated_at = datetime.utcnow()
    if change.target == STATUS_DISCARDED and change.entering_discard:
        article.discard_reason = change.reason
    elif change.target != STATUS_DISCARDED:
        article.discard_reason = None

    for handler in AFTER_TRANSITION:
        handler(session, change, thresholds)

    session.flush()
    if change.target != change.requested:
        logger.info(
            "Article %s: requested %s, stored %s (%s)",
            article.id,
            change.requested,
            change.target,
            "vetoed" if change.vetoed else change.reason,
        )
    return change
