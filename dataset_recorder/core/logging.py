"""Logging setup: JSON lines or plain text, with secrets scrubbed from every line."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from ..services.redaction import redact_secrets

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Record attributes promoted into structured output
EXTRA_FIELDS = ("session_id", "task_id", "tool_call_id", "path", "command")

QUIET_LOGGERS = ("git", "httpx", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (name, record.__dict__[name]) for name in EXTRA_FIELDS if name in record.__dict__
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(redact_secrets(entry), default=str)


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter that scrubs secrets from the final line."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_secrets(super().format(record))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", structured: bool = True) -> None:
    """Replace root handlers with a single stderr handler.

    Args:
        level: Level name; unknown names fall back to INFO
        structured: JSON lines when True, plain text otherwise
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter() if structured else RedactingFormatter(PLAIN_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    resolved = getattr(logging, level.upper(), None)
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
