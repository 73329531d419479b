"""Structured Logging: JSON formatter, setup, and the logging-backed trace sink.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (collection, resource_id, decision, error_code, ...) surfaced when present
    - JSON format in production, human-readable otherwise
    - LoggingTraceSink only logs; it never alters what core computes

Design Decisions:
    - setup_logging (or setup_logging_from_settings) called once by the embedding application
    - Trace events go out at DEBUG so decision-level detail is opt-in
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from retailops.config import Settings, get_settings

_EXTRA_FIELDS = (
    "event", "collection", "resource_id", "principal_id", "decision", "reason",
    "error_code", "findings", "total_items", "invalid_items",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        fields = record.__dict__.get("trace_fields")
        if fields:
            log["fields"] = fields
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure root logging for the embedding application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


def setup_logging_from_settings(settings: Settings | None = None):
    """setup_logging driven by RETAILOPS_LOG_LEVEL / RETAILOPS_LOG_FORMAT."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)


class LoggingTraceSink:
    """TraceSink that forwards core events to a logger."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        self._logger = logger or logging.getLogger("retailops.trace")
        self._level = level

    def event(self, name: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        self._logger.log(
            self._level, name,
            extra={"event": name, "trace_fields": fields},
        )
