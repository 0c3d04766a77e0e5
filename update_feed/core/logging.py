"""Update Feed logging configuration.

Two output modes: one JSON object per line for production log shipping,
and a readable single-line format for local development. Both pass
records through ``TokenRedactionFilter`` so a plaintext Composer token
never reaches a log sink, even when it shows up in an exception message.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

# Context attributes callers attach with ``extra=``; copied into JSON output
CONTEXT_FIELDS = ("owner_id", "site_hash", "product_id", "client_ip")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio")

REDACTED = "[redacted]"


class TokenRedactionFilter(logging.Filter):
    """Mask anything shaped like a Composer token in log messages."""

    def __init__(self, token_prefix: str):
        super().__init__()
        self._pattern = re.compile(re.escape(token_prefix) + r"[A-Za-z0-9]+")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._pattern.sub(REDACTED, message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any attached request context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
    token_prefix: str | None = None,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name for the application loggers
        format_type: 'structured' for JSON lines, 'dev' for readable output
        token_prefix: Composer token prefix to redact (defaults to settings)
    """
    if token_prefix is None:
        from update_feed.core.config import settings

        token_prefix = settings.token_prefix

    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%H:%M:%S"))
    handler.addFilter(TokenRedactionFilter(token_prefix))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    debug = level.upper() == "DEBUG"
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    get_logger("logging").info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under ``update_feed``."""
    return logging.getLogger(f"update_feed.{name}")
