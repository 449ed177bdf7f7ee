"""Structured audit events.

Every state change of consequence is written to ``system_logs`` and
mirrored to the Python logger, so the table and the process log tell the
same story.
"""

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from db.models import SystemLog

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_event(
    session: Session,
    level: str,
    message: str,
    context: dict[str, Any] | None = None,
    function_name: str | None = None,
) -> SystemLog:
    """Record an audit event in the current transaction."""
    entry = SystemLog(
        level=level,
        message=message,
        context=json.dumps(context or {}, default=str),
        function_name=function_name,
    )
    session.add(entry)
    logger.log(
        _LEVELS.get(level, logging.INFO),
        "[%s] %s %s",
        function_name or "-",
        message,
        json.dumps(context or {}, default=str),
    )
    return entry
