"""The status change record passed through transition handlers."""

from dataclasses import dataclass, field
from typing import Any

from db.models import TopicArticle


@dataclass
class StatusChange:
    """One requested processing_status change and what became of it.

    ``previous`` is None when the article is being inserted. Before-handlers
    may rewrite ``target`` (and ``reason``); after-handlers only react.
    """

    article: TopicArticle
    previous: str | None
    requested: str
    target: str
    actor: str | None = None
    reason: str | None = None
    vetoed: bool = False
    rejection: dict[str, Any] | None = None
    queued_item_id: int | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def entering_discard(self) -> bool:
        return self.target == "discarded" and self.previous != "discarded"

    @property
    def leaving_discard(self) -> bool:
        return self.previous == "discarded" and self.requested != "discarded"
