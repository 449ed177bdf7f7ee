from db.database import get_engine, get_session, init_db
from db.models import (
    ArticleDuplicatePending,
    ContentGenerationQueueItem,
    ContentSource,
    DiscardedArticle,
    SharedArticleContent,
    SystemLog,
    Topic,
    TopicArticle,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "ArticleDuplicatePending",
    "ContentGenerationQueueItem",
    "ContentSource",
    "DiscardedArticle",
    "SharedArticleContent",
    "SystemLog",
    "Topic",
    "TopicArticle",
]
