"""Tests for checksum and title-similarity duplicate detection."""

from dataclasses import replace

import pytest
from sqlalchemy import select

from db.models import ArticleDuplicatePending, TopicArticle
from pipeline.duplicates import find_duplicates, resolve_duplicate
from pipeline.errors import NotFoundError, PipelineError
from pipeline.ingest import ingest_article
from pipeline.similarity import title_similarity

BASE_TITLE = "Council approves new seafront cycle lane plan"


@pytest.fixture
def manual(thresholds):
    """Thresholds that leave clean articles in ``new``."""
    return replace(thresholds, auto_promote=False)


def _ingest(session, thresholds, make_payload, url, title, **kwargs):
    result = ingest_article(session, make_payload(url, title=title, **kwargs), thresholds)
    assert result["success"] is True
    return result


class TestTitleSimilarity:
    def test_threshold_boundary(self, session, manual, make_payload):
        other_title = "Council approves new seafront cycle lane"
        first = _ingest(session, manual, make_payload, "https://a.com/1", BASE_TITLE)
        _ingest(session, manual, make_payload, "https://b.com/1", "Ferry timetable changes")
        second = _ingest(session, manual, make_payload, "https://c.com/1", other_title)
        score = title_similarity(BASE_TITLE, other_title)

        above = find_duplicates(session, second["topic_article_id"],
                                replace(manual, duplicate_similarity_threshold=score + 0.01))
        below = find_duplicates(session, second["topic_article_id"],
                                replace(manual, duplicate_similarity_threshold=score - 0.01))

        assert above == []
        assert [c.duplicate_article_id for c in below] == [first["topic_article_id"]]
        assert below[0].similarity_score == score
        assert below[0].detection_method == "title_similarity"

    def test_sorted_by_similarity_descending(self, session, manual, make_payload):
        close_title = "Council approves new seafront cycle lane plan today"
        far_title = "Council approves seafront cycle lane"
        base = _ingest(session, manual, make_payload, "https://a.com/1", BASE_TITLE)
        close = _ingest(session, manual, make_payload, "https://b.com/1", close_title)
        far = _ingest(session, manual, make_payload, "https://c.com/1", far_title)

        found = find_duplicates(session, base["topic_article_id"],
                                replace(manual, duplicate_similarity_threshold=0.3))
        scores = [c.similarity_score for c in found]

        assert scores == sorted(scores, reverse=True)
        assert {c.duplicate_article_id for c in found} == {close["topic_article_id"], far["topic_article_id"]}
        expected_first = (close if title_similarity(BASE_TITLE, close_title)
                          >= title_similarity(BASE_TITLE, far_title) else far)
        assert found[0].duplicate_article_id == expected_first["topic_article_id"]

    def test_only_new_articles_compared(self, session, thresholds, make_payload):
        # auto-promoted to processed, so out of the title comparison pool
        _ingest(session, thresholds, make_payload, "https://a.com/1", BASE_TITLE)
        second = _ingest(session, thresholds, make_payload, "https://b.com/1", BASE_TITLE)
        assert second["duplicates"] == []
        assert second["status"] == "processed"

    def test_flagged_article_stays_new_for_review(self, session, manual, thresholds, make_payload):
        first = _ingest(session, manual, make_payload, "https://a.com/1", BASE_TITLE)
        second = _ingest(session, thresholds, make_payload, "https://b.com/1", BASE_TITLE)

        assert second["status"] == "new"
        assert second["queued_item_id"] is None
        assert second["duplicates"][0]["duplicate_article_id"] == first["topic_article_id"]

        pending = session.execute(select(ArticleDuplicatePending)).scalar_one()
        assert pending.original_article_id == second["topic_article_id"]
        assert pending.status == "pending"
        meta = session.get(TopicArticle, second["topic_article_id"]).metadata_dict
        assert meta["duplicates_found"] == 1


class TestChecksum:
    def test_same_body_different_url(self, session, thresholds, make_payload):
        body = " ".join(f"token{i}" for i in range(220))
        first = _ingest(session, thresholds, make_payload, "https://a.com/story", "Pier reopens", body=body)
        second = _ingest(session, thresholds, make_payload, "https://mirror.net/copy", "Totally different words",
                         body=body)

        assert first["status"] == "processed"
        assert second["status"] == "new"
        assert second["duplicates"] == [{
            "duplicate_article_id": first["topic_article_id"],
            "similarity_score": 1.0,
            "detection_method": "checksum",
        }]

    def test_discarded_articles_ignored(self, session, thresholds, make_payload):
        body = " ".join(f"token{i}" for i in range(220))
        _ingest(session, thresholds, make_payload, "https://a.com/story", "Pier reopens", body=body, score=1)
        second = _ingest(session, thresholds, make_payload, "https://b.com/story", "Pier reopens", body=body)
        assert second["duplicates"] == []


class TestResolve:
    @pytest.fixture
    def pending(self, session, manual, make_payload):
        _ingest(session, manual, make_payload, "https://a.com/1", BASE_TITLE)
        _ingest(session, manual, make_payload, "https://b.com/1", BASE_TITLE)
        return session.execute(select(ArticleDuplicatePending)).scalar_one()

    def test_merge_discards_duplicate_into_original(self, session, manual, pending):
        resolved = resolve_duplicate(session, pending.id, "merged", manual, resolved_by="alice")
        session.commit()

        assert resolved.status == "merged"
        assert resolved.resolved_at is not None
        original = session.get(TopicArticle, pending.original_article_id)
        duplicate = session.get(TopicArticle, pending.duplicate_article_id)
        assert duplicate.processing_status == "discarded"
        assert duplicate.discard_reason == f"merged into #{original.id}"
        assert duplicate.metadata_dict["merged_with"] == original.id
        assert duplicate.metadata_dict["duplicate_detection_method"] == pending.detection_method
        assert original.processing_status == "new"
        assert original.metadata_dict["merged_from"] == [duplicate.id]

    def test_ignore_leaves_both(self, session, manual, pending):
        resolve_duplicate(session, pending.id, "ignored", manual)
        session.commit()
        assert session.get(TopicArticle, pending.original_article_id).processing_status == "new"

    def test_cannot_resolve_twice(self, session, manual, pending):
        resolve_duplicate(session, pending.id, "ignored", manual)
        with pytest.raises(PipelineError):
            resolve_duplicate(session, pending.id, "merged", manual)

    def test_unknown_resolution(self, session, manual, pending):
        with pytest.raises(PipelineError):
            resolve_duplicate(session, pending.id, "deleted", manual)

    def test_missing_item(self, session, manual):
        with pytest.raises(NotFoundError):
            resolve_duplicate(session, 999, "merged", manual)
