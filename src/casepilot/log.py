"""
CasePilot Logging

Structured JSON logging for the engine and the API service.

Modules log through ``logging.getLogger(__name__)``; only the entry points
(API lifespan, CLI) call :func:`configure_logging`.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "casepilot"

# Extra attributes copied from the LogRecord into the JSON line
EXTRA_FIELDS = (
    "case_id",
    "task_id",
    "rule_id",
    "action_id",
    "approval_id",
    "pack_id",
    "pack_hash_short",
    "matched",
    "score",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", json_output: bool = True) -> logging.Logger:
    """
    Install a single stream handler on the ``casepilot`` logger.

    Calling it again replaces the handler instead of stacking a new one.

    Args:
        level: Logging level name (DEBUG, INFO, ...)
        json_output: Use JSONFormatter when True, plain text otherwise

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in list(logger.handlers):
        if getattr(existing, "_casepilot_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    handler._casepilot_handler = True
    logger.addHandler(handler)
    return logger
