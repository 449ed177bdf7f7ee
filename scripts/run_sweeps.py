#!/usr/bin/env python3
"""Cron entry point: stall recovery, failed-item purge, ledger cleanup."""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import THRESHOLDS
from db.database import get_session, init_db
from pipeline.sweeps import run_sweeps

SWEEPS = ("stalled", "failed", "ledger")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run topicfeed maintenance sweeps")
    parser.add_argument(
        "--only",
        choices=SWEEPS,
        action="append",
        help="Run only this sweep (repeatable, default: all)",
    )
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
        result = run_sweeps(session, THRESHOLDS, tuple(args.only or SWEEPS))
    finally:
        session.close()

    logging.info("Sweeps finished: %s", json.dumps(result, default=str))
    if not result["success"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
