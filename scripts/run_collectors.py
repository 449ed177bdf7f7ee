#!/usr/bin/env python3
"""CLI to run topicfeed ingestion workers for active sources."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from collectors.rss import RssCollector
from config import THRESHOLDS
from db.database import get_session, init_db
from db.models import ContentSource, Topic


def main() -> None:
    parser = argparse.ArgumentParser(description="Run topicfeed collectors")
    parser.add_argument("--topic", type=int, help="Only sources attached to this topic id")
    parser.add_argument("--source", type=int, help="Only this source id")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    init_db()
    session = get_session()
    try:
        stmt = (
            select(ContentSource, Topic)
            .join(Topic, ContentSource.topic_id == Topic.id)
            .where(ContentSource.is_active.is_(True), Topic.is_active.is_(True))
        )
        if args.topic:
            stmt = stmt.where(Topic.id == args.topic)
        if args.source:
            stmt = stmt.where(ContentSource.id == args.source)
        pairs = session.execute(stmt).all()
        collectors = [RssCollector(source, topic, THRESHOLDS) for source, topic in pairs]
    finally:
        session.close()

    total_created = 0
    for collector in collectors:
        logging.info("Running collector: %s (topic %s)", collector.source_name, collector.topic_id)
        try:
            stats = collector.run()
            total_created += stats["created"]
        except Exception:
            logging.exception("Collector %s failed", collector.source_name)

    logging.info("Done. Total new topic articles: %d", total_created)


if __name__ == "__main__":
    main()
