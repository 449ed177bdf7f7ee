"""Tests for database migration idempotency."""

import pytest
from sqlalchemy import create_engine, text

from db.migrations import MIGRATIONS, _column_exists, run_migrations
from db.models import Base


@pytest.fixture
def engine(tmp_path):
    db_path = tmp_path / "test_migration.db"
    eng = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(eng)
    return eng


def test_migration_adds_columns(engine):
    """Columns should be added if they don't exist."""
    # SQLite doesn't support DROP COLUMN easily, so create a fresh table without them
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE IF EXISTS topic_articles"))
        conn.execute(text("""
            CREATE TABLE topic_articles (
                id INTEGER PRIMARY KEY,
                topic_id INTEGER NOT NULL,
                shared_content_id INTEGER NOT NULL,
                source_id INTEGER,
                processing_status VARCHAR,
                regional_relevance_score INTEGER,
                content_quality_score INTEGER,
                import_metadata TEXT,
                created_at DATETIME,
                updated_at DATETIME
            )
        """))
        conn.commit()

    assert not _column_exists(engine, "topic_articles", "originality_confidence")
    assert not _column_exists(engine, "topic_articles", "discard_reason")

    run_migrations(engine)

    assert _column_exists(engine, "topic_articles", "originality_confidence")
    assert _column_exists(engine, "topic_articles", "discard_reason")


def test_added_column_gets_default(engine):
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE IF EXISTS shared_article_content"))
        conn.execute(text("""
            CREATE TABLE shared_article_content (
                id INTEGER PRIMARY KEY,
                url VARCHAR NOT NULL,
                normalized_url VARCHAR NOT NULL UNIQUE
            )
        """))
        conn.execute(text("INSERT INTO shared_article_content (url, normalized_url) VALUES ('u', 'n')"))
        conn.commit()

    run_migrations(engine)

    with engine.connect() as conn:
        value = conn.execute(text("SELECT reading_time_minutes FROM shared_article_content")).scalar_one()
    assert value == 1


def test_migration_idempotent(engine):
    """Running migrations twice should not fail."""
    run_migrations(engine)
    run_migrations(engine)  # Should not raise

    for table, column, _ in MIGRATIONS:
        assert _column_exists(engine, table, column)


def test_column_exists_check(engine):
    assert _column_exists(engine, "topic_articles", "processing_status")
    assert _column_exists(engine, "discarded_articles", "normalized_url")
    assert not _column_exists(engine, "topic_articles", "nonexistent_column")
