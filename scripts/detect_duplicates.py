#!/usr/bin/env python3
"""Backfill duplicate detection for every article still in ``new``."""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from config import THRESHOLDS
from db.database import get_session, init_db
from db.models import STATUS_NEW, TopicArticle
from pipeline.duplicates import detect_and_record

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Detect duplicates among new articles")
    parser.add_argument("--topic", type=int, help="Limit to one topic id")
    args = parser.parse_args()

    init_db()
    session = get_session()
    try:
        stmt = select(TopicArticle.id).where(TopicArticle.processing_status == STATUS_NEW)
        if args.topic:
            stmt = stmt.where(TopicArticle.topic_id == args.topic)
        article_ids = session.execute(stmt.order_by(TopicArticle.id)).scalars().all()
        logger.info("Checking %d new articles for duplicates", len(article_ids))

        flagged = 0
        for article_id in article_ids:
            candidates = detect_and_record(session, article_id, THRESHOLDS)
            if candidates:
                flagged += 1
        session.commit()
        logger.info("Articles with duplicate candidates: %d (of %d)", flagged, len(article_ids))
    except Exception:
        session.rollback()
        logger.exception("Duplicate backfill failed")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
