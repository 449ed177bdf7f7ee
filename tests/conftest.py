"""Shared fixtures: a fresh SQLite database per test plus seeded topic/sources."""

import json
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config import PipelineThresholds
from db.models import Base, ContentSource, Topic


@pytest.fixture
def engine(tmp_path):
    db_path = tmp_path / "test_pipeline.db"
    eng = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def thresholds():
    return PipelineThresholds()


@pytest.fixture
def topic(session):
    t = Topic(
        name="Eastbourne News",
        topic_type="regional",
        region="Eastbourne",
        keywords=json.dumps(["seafront", "council"]),
        competing_regions=json.dumps(["Brighton", "Hastings"]),
    )
    session.add(t)
    session.commit()
    return t


@pytest.fixture
def sources(session, topic):
    created = {
        kind: ContentSource(topic_id=topic.id, name=f"{kind} source", source_type=kind,
                            feed_url=f"https://{kind}.example.com/feed")
        for kind in ("hyperlocal", "regional", "national")
    }
    session.add_all(created.values())
    session.commit()
    return created


def body_of(words: int, seed: str = "w") -> str:
    """A body with exactly ``words`` whitespace-separated tokens, unique per seed."""
    return " ".join(f"{seed}{i}" for i in range(words))


@pytest.fixture
def make_payload(topic, sources):
    """Factory for scraper payloads bound to the seeded topic."""

    def _make(
        url: str,
        title: str = "Seafront works begin",
        words: int = 200,
        source: str | None = "regional",
        score: int | None = 50,
        **extra: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": url,
            "title": title,
            "body": body_of(words, seed=url),
            "author": None,
            "published_at": None,
            "topic_id": topic.id,
            "source_id": sources[source].id if source else None,
            "regional_relevance_score": score,
            "import_metadata": {},
        }
        payload.update(extra)
        return payload

    return _make
