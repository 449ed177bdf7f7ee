"""SQLAlchemy models for topicfeed."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Processing states for topic articles
STATUS_NEW = "new"
STATUS_PROCESSED = "processed"
STATUS_DISCARDED = "discarded"
PROCESSING_STATUSES = (STATUS_NEW, STATUS_PROCESSED, STATUS_DISCARDED)

# Queue states
QUEUE_PENDING = "pending"
QUEUE_PROCESSING = "processing"
QUEUE_COMPLETED = "completed"
QUEUE_FAILED = "failed"
QUEUE_ACTIVE_STATUSES = (QUEUE_PENDING, QUEUE_PROCESSING)

_ACTIVE_QUEUE_WHERE = text("status IN ('pending', 'processing')")


def _load_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


class Base(DeclarativeBase):
    pass


class Topic(Base):
    """A tenant's content channel, regional or keyword based."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    topic_type: Mapped[str] = mapped_column(String, default="regional")  # regional, keyword
    region: Mapped[str | None] = mapped_column(String)
    keywords: Mapped[str | None] = mapped_column(Text)  # JSON array
    competing_regions: Mapped[str | None] = mapped_column(Text)  # JSON array
    min_word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_article_age_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    default_tone: Mapped[str | None] = mapped_column(String)
    default_writing_style: Mapped[str | None] = mapped_column(String)
    default_audience_expertise: Mapped[str | None] = mapped_column(String)
    default_slidetype: Mapped[str | None] = mapped_column(String)
    default_ai_provider: Mapped[str | None] = mapped_column(String)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sources: Mapped[list["ContentSource"]] = relationship(back_populates="topic")

    @property
    def keyword_list(self) -> list[str]:
        return [str(k) for k in _load_json(self.keywords, []) if k]

    @property
    def competing_region_list(self) -> list[str]:
        return [str(r) for r in _load_json(self.competing_regions, []) if r]

    def __repr__(self) -> str:
        return f"<Topic(id={self.id}, name={self.name!r}, type={self.topic_type!r})>"


class ContentSource(Base):
    """External feed scraped for articles."""

    __tablename__ = "content_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int | None] = mapped_column(ForeignKey("topics.id"))
    name: Mapped[str] = mapped_column(String, nullable=False)
    feed_url: Mapped[str | None] = mapped_column(String)
    source_type: Mapped[str] = mapped_column(String, default="national")  # hyperlocal, regional, national
    credibility_score: Mapped[int] = mapped_column(Integer, default=50)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    topic: Mapped[Topic | None] = relationship(back_populates="sources")

    def __repr__(self) -> str:
        return f"<ContentSource(id={self.id}, name={self.name!r}, type={self.source_type!r})>"


class SharedArticleContent(Base):
    """Scraped article body, stored once per normalized URL."""

    __tablename__ = "shared_article_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url: Mapped[str] = mapped_column(String, nullable=False)
    normalized_url: Mapped[str] = mapped_column(String, unique=True, nullable=False)  # dedup key
    title: Mapped[str | None] = mapped_column(String)
    body: Mapped[str | None] = mapped_column(Text)
    author: Mapped[str | None] = mapped_column(String)
    published_at: Mapped[datetime | None] = mapped_column(DateTime)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    reading_time_minutes: Mapped[int] = mapped_column(Integer, default=1)
    content_checksum: Mapped[str | None] = mapped_column(String)
    source_domain: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_shared_content_checksum", "content_checksum"),
    )

    def __repr__(self) -> str:
        return f"<SharedArticleContent(id={self.id}, normalized_url={self.normalized_url!r})>"


class TopicArticle(Base):
    """An article as seen by one topic, carrying its processing state."""

    __tablename__ = "topic_articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    shared_content_id: Mapped[int] = mapped_column(ForeignKey("shared_article_content.id"), nullable=False)
    source_id: Mapped[int | None] = mapped_column(ForeignKey("content_sources.id"))
    processing_status: Mapped[str] = mapped_column(String, default=STATUS_NEW)
    regional_relevance_score: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 0-100
    content_quality_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    originality_confidence: Mapped[int] = mapped_column(Integer, default=100)
    import_metadata: Mapped[str | None] = mapped_column(Text)  # JSON object
    discard_reason: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    topic: Mapped[Topic] = relationship()
    content: Mapped[SharedArticleContent] = relationship()
    source: Mapped[ContentSource | None] = relationship()

    __table_args__ = (
        UniqueConstraint("topic_id", "shared_content_id", name="uq_topic_article_content"),
        Index("idx_topic_articles_status", "topic_id", "processing_status"),
    )

    @property
    def metadata_dict(self) -> dict[str, Any]:
        data = _load_json(self.import_metadata, {})
        return data if isinstance(data, dict) else {}

    def merge_metadata(self, extra: dict[str, Any]) -> None:
        """Merge keys into import_metadata without dropping existing ones."""
        merged = self.metadata_dict
        merged.update(extra)
        self.import_metadata = json.dumps(merged, default=str)

    def __repr__(self) -> str:
        return (
            f"<TopicArticle(id={self.id}, topic_id={self.topic_id}, "
            f"status={self.processing_status!r})>"
        )


class DiscardedArticle(Base):
    """Suppression ledger entry: a URL a topic must never resurrect."""

    __tablename__ = "discarded_articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    normalized_url: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str | None] = mapped_column(String)
    discarded_by: Mapped[str | None] = mapped_column(String, nullable=True)  # null = system
    discarded_reason: Mapped[str | None] = mapped_column(String)
    discarded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("topic_id", "normalized_url", name="uq_discarded_topic_url"),
        Index("idx_discarded_at", "discarded_at"),
    )

    def __repr__(self) -> str:
        return f"<DiscardedArticle(topic_id={self.topic_id}, normalized_url={self.normalized_url!r})>"


class ArticleDuplicatePending(Base):
    """Duplicate candidate pair awaiting a merge/ignore decision."""

    __tablename__ = "article_duplicates_pending"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    original_article_id: Mapped[int] = mapped_column(ForeignKey("topic_articles.id"), nullable=False)
    duplicate_article_id: Mapped[int] = mapped_column(ForeignKey("topic_articles.id"), nullable=False)
    similarity_score: Mapped[float] = mapped_column(Float, nullable=False)
    detection_method: Mapped[str] = mapped_column(String, nullable=False)  # title_similarity, checksum
    status: Mapped[str] = mapped_column(String, default="pending")  # pending, merged, ignored
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint("original_article_id", "duplicate_article_id", name="uq_duplicate_pair"),
    )


class ContentGenerationQueueItem(Base):
    """Work item for the external story generator."""

    __tablename__ = "content_generation_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_article_id: Mapped[int] = mapped_column(ForeignKey("topic_articles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String, default=QUEUE_PENDING)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    error_message: Mapped[str | None] = mapped_column(Text)
    slidetype: Mapped[str | None] = mapped_column(String)
    tone: Mapped[str | None] = mapped_column(String)
    writing_style: Mapped[str | None] = mapped_column(String)
    audience_expertise: Mapped[str | None] = mapped_column(String)
    ai_provider: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        # At most one active item per article
        Index(
            "uq_queue_active_article",
            "topic_article_id",
            unique=True,
            sqlite_where=_ACTIVE_QUEUE_WHERE,
            postgresql_where=_ACTIVE_QUEUE_WHERE,
        ),
        Index("idx_queue_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<ContentGenerationQueueItem(id={self.id}, status={self.status!r}, attempts={self.attempts})>"


class SystemLog(Base):
    """Structured audit event."""

    __tablename__ = "system_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    level: Mapped[str] = mapped_column(String, default="info")
    message: Mapped[str] = mapped_column(String, nullable=False)
    context: Mapped[str | None] = mapped_column(Text)  # JSON object
    function_name: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_system_logs_function", "function_name"),
    )

    @property
    def context_dict(self) -> dict[str, Any]:
        data = _load_json(self.context, {})
        return data if isinstance(data, dict) else {}
