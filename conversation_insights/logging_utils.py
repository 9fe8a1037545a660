"""
Structured JSON logging for insight components.

Components log through the standard library with ``extra`` context
(``session_id``, ``viewer_id``, ``batch_size``, ``operation``). This module
renders those records as one JSON object per line and provides an adapter
that carries request context across a whole bulk call.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from .exceptions import InsightsError

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """
    Format records as single-line JSON.

    Fields: ``timestamp`` (record creation time, UTC ISO-8601), ``level``,
    ``logger``, ``message``, then every ``extra`` field. Exceptions add
    ``exception`` (the traceback) and, for InsightsError, ``error`` with the
    error type, retryable flag and details.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = _jsonable(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
            error = record.exc_info[1]
            if isinstance(error, InsightsError):
                entry["error"] = {
                    "type": type(error).__name__,
                    "retryable": error.retryable,
                    "details": {k: _jsonable(v) for k, v in error.details.items()},
                }

        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Send a logger's output through StructuredJsonFormatter.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: root logger)
        stream: Output stream (default: stdout)

    Returns:
        The configured logger; earlier handlers on it are replaced
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


def get_insights_logger(name: str) -> logging.Logger:
    """Logger named ``conversation_insights.<name>``."""
    return logging.getLogger(f"conversation_insights.{name}")


class InsightsLoggerAdapter(logging.LoggerAdapter):
    """
    Adds request context to every record.

    Per-call ``extra`` takes precedence over the adapter's context, so a
    batch-level adapter can still tag single records with a ``session_id``.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "InsightsLoggerAdapter":
        """Return an adapter with additional context."""
        return InsightsLoggerAdapter(self.logger, {**(self.extra or {}), **context})
