"""
Structured logging configuration for the Pears game server.

Provides:
- JSONFormatter for production (one JSON object per line)
- DevelopmentFormatter, a coloured single-line format for local runs
- ContextLogger for attaching room/player/command context to records

Connection context comes from a ContextVar set by the WebSocket endpoint;
room context is passed per record through ``extra`` or ``with_context``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set by the WebSocket endpoint for the lifetime of one connection
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)

# Record attribute -> short label used by the development formatter
CONTEXT_FIELDS = {
    "room_code": "room",
    "player_id": "player",
    "phase": "phase",
    "command": "cmd",
    "error_code": "err",
}

# Ids are long; eight characters is enough to tell them apart in a terminal
SHORT_ID_FIELDS = ("connection_id", "player_id")


def record_context(record: logging.LogRecord) -> dict:
    """Collect the connection and room context attached to a record."""
    context = {}
    connection_id = connection_id_var.get()
    if connection_id:
        context["connection_id"] = connection_id
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for production log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Example:
        14:02:11.532 INFO     handlers [conn=3f9a1c2e room=K7QX2M cmd=submit_card] - Rejected ...
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        level = f"{color}{record.levelname:8}{self.RESET if color else ''}"
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        labels = []
        for name, value in record_context(record).items():
            label = CONTEXT_FIELDS.get(name, "conn")
            text = str(value)
            labels.append(f"{label}={text[:8] if name in SHORT_ID_FIELDS else text}")
        context = f" [{' '.join(labels)}]" if labels else ""

        line = f"{clock} {level} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output, anything else the
            development format.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "uvicorn.error", "websockets", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that merges bound context into every record.

    Usage:
        log = get_logger(__name__).with_context(room_code="K7QX2M")
        log.info("Round started", extra={"phase": "submit"})
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a new adapter with kwargs added to the bound context."""
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
