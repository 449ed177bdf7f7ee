"""Idempotent database migrations for topicfeed.

Columns that arrived after the first schema are added with ADD COLUMN,
which both SQLite and Postgres accept for nullable or constant-default
columns. Each migration checks if the column exists first.
"""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

MIGRATIONS: list[tuple[str, str, str]] = [
    ("shared_article_content", "reading_time_minutes", "INTEGER DEFAULT 1"),
    ("topic_articles", "originality_confidence", "INTEGER DEFAULT 100"),
    ("topic_articles", "discard_reason", "VARCHAR"),
    ("topics", "competing_regions", "TEXT"),
    ("topics", "max_article_age_days", "INTEGER"),
    ("topics", "default_audience_expertise", "VARCHAR"),
    ("content_generation_queue", "tone", "VARCHAR"),
    ("content_generation_queue", "writing_style", "VARCHAR"),
    ("content_generation_queue", "audience_expertise", "VARCHAR"),
    ("content_generation_queue", "ai_provider", "VARCHAR"),
]


def _column_exists(engine: Engine, table: str, column: str) -> bool:
    """Check if a column exists in the given table."""
    columns = [col["name"] for col in inspect(engine).get_columns(table)]
    return column in columns


def run_migrations(engine: Engine) -> None:
    """Run all pending migrations idempotently."""
    with engine.connect() as conn:
        for table, column, col_type in MIGRATIONS:
            if not _column_exists(engine, table, column):
                logger.info("Adding column %s.%s (%s)", table, column, col_type)
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
                conn.commit()
            else:
                logger.debug("Column %s.%s already exists, skipping", table, column)
