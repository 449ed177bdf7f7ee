"""Periodic maintenance run by cron: stall recovery and retention purges."""

import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from config import PipelineThresholds
from pipeline.queue import purge_failed_items, reset_stalled_items
from pipeline.suppression import cleanup_ledger

logger = logging.getLogger(__name__)


def _run_step(session: Session, name: str, step: Callable[[], Any]) -> dict[str, Any]:
    try:
        outcome = step()
        session.commit()
        return {"success": True, "result": outcome}
    except Exception as e:
        session.rollback()
        logger.exception("Sweep step %s failed", name)
        return {"success": False, "error": str(e)}


def run_sweeps(
    session: Session,
    thresholds: PipelineThresholds,
    steps: tuple[str, ...] = ("stalled", "failed", "ledger"),
) -> dict[str, Any]:
    """Run the requested sweeps, each in its own transaction.

    A failing step is reported and does not stop the others.
    """
    available: dict[str, Callable[[], Any]] = {
        "stalled": lambda: reset_stalled_items(session, thresholds),
        "failed": lambda: purge_failed_items(session, thresholds),
        "ledger": lambda: cleanup_ledger(session, thresholds.ledger_retention_days),
    }
    results: dict[str, Any] = {}
    for name in steps:
        if name not in available:
            results[name] = {"success": False, "error": f"Unknown sweep {name!r}"}
            continue
        results[name] = _run_step(session, name, available[name])
        logger.info("Sweep %s: %s", name, results[name])
    return {
        "success": all(r["success"] for r in results.values()),
        "steps": results,
    }
