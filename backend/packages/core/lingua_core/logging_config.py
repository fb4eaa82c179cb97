"""
Logging configuration.

Thin layer over the standard ``logging`` module. Call sites attach context
with ``extra={...}``; the formatters render those fields alongside the
message so job logs can be filtered by task or language.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Attributes present on every LogRecord; anything else came from ``extra``
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_HANDLER_NAME = "lingua"


def _extract_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extract_extra(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human readable formatter that appends ``key=value`` context."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _extract_extra(record)
        if extra:
            context = " ".join(f"{key}={value}" for key, value in extra.items())
            # Keep the traceback (if any) after the context
            head, sep, tail = line.partition("\n")
            line = f"{head} [{context}]{sep}{tail}"
        return line


def init_logging(level: str = "INFO", fmt: str = "console") -> None:
    """
    Configure the root logger.

    Safe to call more than once; the Lingua handler is replaced rather than
    duplicated.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG").
        fmt: "json" for structured output, anything else for console output.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ConsoleFormatter())
    root.addHandler(handler)

    # Quiet noisy third-party loggers
    for noisy in ("sqlalchemy.engine", "httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
