"""Logging setup for the forgesync package.

Two formats are supported:
- text: human-readable lines for local use
- json: one JSON object per record for log shippers
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Record attributes copied into JSON output when a caller passes them via `extra=`.
_EXTRA_FIELDS = ("repo", "owner")


class JSONFormatter(logging.Formatter):
    """Formatter that renders each record as a JSON string."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def configure_logging(level: str = "info", fmt: str = "text") -> logging.Logger:
    """Attach a single stdout handler to the ``forgesync`` logger.

    Safe to call repeatedly; the previous handler is replaced rather than
    stacked.
    """
    logger = logging.getLogger("forgesync")
    logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))

    for existing in list(logger.handlers):
        if getattr(existing, "_forgesync_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler._forgesync_handler = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    return logger
