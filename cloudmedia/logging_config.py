"""
Logging Configuration — Structured logging for the API, CLI and search loops.

Two output formats share one set of context fields (request_id,
user_id, asset_id). Inside a Flask request the request and user ids
are filled in from flask.g automatically; anywhere else they can be
passed with `extra=`.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from cloudmedia.logging_config import setup_logging

    setup_logging()  # Call once at startup
    logger.info("Compressed", extra={"asset_id": asset.id})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from flask import g, has_request_context

CONTEXT_FIELDS = ("request_id", "user_id", "asset_id")

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS: Tuple[Tuple[str, int], ...] = (
    ("urllib3", logging.WARNING),
    ("httpx", logging.WARNING),
    ("cloudinary", logging.WARNING),
    ("pypdf", logging.ERROR),
    ("PIL", logging.WARNING),
    # after_request already logs every API call with its duration
    ("werkzeug", logging.WARNING),
)


class RequestContextFilter(logging.Filter):
    """Copy request_id / user_id from flask.g onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            for field in ("request_id", "user_id"):
                if getattr(record, field, None) is None:
                    value = g.get(field)
                    if value is not None:
                        setattr(record, field, value)
        return True


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"ts": "...", "level": "...", "logger": "...", "message": "...", "asset_id": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class HumanFormatter(logging.Formatter):
    """
    Readable lines for development.

    12:34:56 INFO    [orchestrator   ] Compressed A-1f3e... (req=9c1d2e3f user=alice)
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHORT = {"request_id": "req", "user_id": "user", "asset_id": "asset"}

    def __init__(self, color: bool | None = None):
        super().__init__()
        self.color = sys.stderr.isatty() if color is None else color

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:7}"
        if self.color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        module = record.name.split(".")[-1][:15]
        parts: List[str] = [f"{time_str} {level} [{module:15}] {record.getMessage()}"]

        context = _context(record)
        if context:
            tags = " ".join(f"{self.SHORT[k]}={v}" for k, v in context.items())
            parts.append(f"({tags})")

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
               Defaults to LOG_LEVEL env var or INFO.
        format_type: Output format (json, text).
                     Defaults to LOG_FORMAT env var or text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if log_format == "json" else HumanFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )
