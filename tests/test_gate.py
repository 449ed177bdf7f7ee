"""Tests for the relevance/quality gate as seen through ingestion."""

from dataclasses import replace

from sqlalchemy import select

from db.models import DiscardedArticle, SystemLog, TopicArticle
from pipeline.ingest import ingest_article


def _article(session, result):
    return session.get(TopicArticle, result["topic_article_id"])


class TestWordCountFloor:
    def test_one_word_short_is_discarded(self, session, thresholds, make_payload):
        result = ingest_article(session, make_payload("https://site.com/short", words=149), thresholds)

        assert result["success"] is True
        assert result["status"] == "discarded"
        assert "149" in result["discard_reason"]
        assert "150" in result["discard_reason"]

        meta = _article(session, result).metadata_dict
        assert meta["rejection_reason"] == "insufficient_word_count"
        assert meta["word_count"] == 149
        assert meta["min_word_count"] == 150

    def test_exactly_at_floor_passes(self, session, thresholds, make_payload):
        result = ingest_article(session, make_payload("https://site.com/exact", words=150), thresholds)
        assert result["status"] != "discarded"

    def test_topic_override(self, session, thresholds, topic, make_payload):
        topic.min_word_count = 300
        session.commit()
        result = ingest_article(session, make_payload("https://site.com/mid", words=250), thresholds)
        assert result["status"] == "discarded"
        assert "minimum 300" in result["discard_reason"]

    def test_gate_discard_lands_in_ledger(self, session, thresholds, topic, make_payload):
        ingest_article(session, make_payload("https://site.com/short", words=20), thresholds)
        entry = session.execute(select(DiscardedArticle)).scalar_one()
        assert entry.topic_id == topic.id
        assert entry.normalized_url == "site.com/short"
        assert entry.discarded_by is None

    def test_rejection_is_logged(self, session, thresholds, make_payload):
        ingest_article(session, make_payload("https://site.com/short", words=20), thresholds)
        messages = session.execute(select(SystemLog.message)).scalars().all()
        assert "Article rejected: insufficient word count" in messages


class TestRelevanceThresholds:
    def test_hyperlocal_default_threshold(self, session, thresholds, make_payload):
        result = ingest_article(
            session, make_payload("https://local.com/a", source="hyperlocal", score=12), thresholds
        )
        assert result["status"] == "processed"

    def test_raised_hyperlocal_threshold_rejects(self, session, thresholds, make_payload):
        strict = replace(thresholds, relevance_thresholds={"hyperlocal": 15, "regional": 20})
        result = ingest_article(
            session, make_payload("https://local.com/a", source="hyperlocal", score=12), strict
        )

        assert result["status"] == "discarded"
        meta = _article(session, result).metadata_dict
        assert meta["rejection_reason"] == "insufficient_regional_relevance"
        assert meta["relevance_score"] == 12
        assert meta["min_threshold"] == 15
        assert meta["source_type"] == "hyperlocal"
        assert meta["thresholds_version"] == strict.version

    def test_national_threshold(self, session, thresholds, make_payload):
        strict = replace(thresholds, default_relevance_threshold=40)
        result = ingest_article(
            session, make_payload("https://paper.com/a", source="national", score=35), strict
        )
        assert result["status"] == "discarded"
        assert "minimum 40 for national sources" in result["discard_reason"]

    def test_unknown_source_uses_national_threshold(self, session, thresholds, make_payload):
        result = ingest_article(session, make_payload("https://paper.com/b", source=None, score=25), thresholds)
        assert result["status"] == "discarded"

    def test_regional_boundary(self, session, thresholds, make_payload):
        passed = ingest_article(session, make_payload("https://r.com/a", title="Pier reopens", score=20), thresholds)
        failed = ingest_article(session, make_payload("https://r.com/b", title="Budget vote", score=19), thresholds)
        assert passed["status"] == "processed"
        assert failed["status"] == "discarded"


class TestMetadataScore:
    def test_score_adopted_from_metadata(self, session, thresholds, make_payload):
        payload = make_payload(
            "https://site.com/meta",
            score=None,
            import_metadata={"regional_relevance_score": 5, "scraper": "beautifulsoup"},
        )
        result = ingest_article(session, payload, thresholds)

        assert result["regional_relevance_score"] == 5
        assert result["status"] == "discarded"
        meta = _article(session, result).metadata_dict
        # rejection merged in, scraper keys kept
        assert meta["scraper"] == "beautifulsoup"
        assert meta["rejection_reason"] == "insufficient_regional_relevance"

    def test_computed_score_when_none_supplied(self, session, thresholds, make_payload):
        payload = make_payload("https://site.com/calc", title="Eastbourne council approves seafront plan",
                               score=None)
        result = ingest_article(session, payload, thresholds)
        assert result["regional_relevance_score"] == 70
        assert result["status"] == "processed"


class TestCompetingRegions:
    def test_warning_logged_but_article_kept(self, session, thresholds, make_payload):
        result = ingest_article(
            session, make_payload("https://site.com/brighton", title="Brighton seafront works", score=60), thresholds
        )

        assert result["status"] == "processed"
        assert result["regional_relevance_score"] == 60
        meta = _article(session, result).metadata_dict
        assert meta["competing_region_mentions"] == ["Brighton"]

        warning = session.execute(
            select(SystemLog).where(SystemLog.message == "Competing region mentioned in title")
        ).scalar_one()
        assert warning.level == "warning"
        assert warning.context_dict["competing_regions"] == ["Brighton"]
