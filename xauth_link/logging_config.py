"""Logging configuration with JSON formatting for production."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

from xauth_link.config import is_production

_EXTRA_FIELDS = ("community", "discord_id", "command", "status_code", "path")

# Bearer credentials and form-encoded token fields, e.g. from logged httpx errors.
_SECRET_PATTERNS = (
    re.compile(r"\b(Bearer|Bot) [A-Za-z0-9._~+/-]{20,}=*"),
    re.compile(r"((?:access|refresh)_token|client_secret|code_verifier)=[^&\s]+"),
)


def redact(text: str) -> str:
    """Mask OAuth and bot credentials inside *text*."""
    text = _SECRET_PATTERNS[0].sub(r"\1 ***", text)
    return _SECRET_PATTERNS[1].sub(r"\1=***", text)


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter that masks credentials in the message and traceback."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with known ``extra=`` fields lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }

        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info))

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | int = logging.INFO) -> None:
    """Send all logs to stdout, as JSON in production and plain text otherwise."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if is_production():
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = RedactingFormatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "discord"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
