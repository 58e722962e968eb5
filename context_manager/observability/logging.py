"""Structured logging for the stdio server.

stdout carries the protocol, so every handler installed here writes to
stderr.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

ROOT_LOGGER = "context_manager"

# Extra fields attached by the router and dispatcher via ``extra=``
CONTEXT_FIELDS = ("tool", "skill_id", "request_id", "duration_ms")

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, ELK/Datadog style."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field_name in CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_data[field_name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    level: str = "INFO", fmt: str = "text", stream: TextIO | None = None
) -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Calling this again replaces the handler, so the CLI can reconfigure after
    loading the config file.

    Args:
        level: Logging level name
        fmt: "text" or "json"
        stream: Target stream (default: sys.stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_context_manager_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    handler._context_manager_handler = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
