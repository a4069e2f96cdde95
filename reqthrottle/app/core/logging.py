"""Logging setup for the throttling service.

Records go to stdout in one of three formats chosen by ``LOG_FORMAT``:
plain text, text with the rate limit context appended, or one JSON object
per line. Limiter decisions attach their context (dimension, reason,
client address) through ``extra=get_log_context(...)``.
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from reqthrottle.app.core.config import settings

# Request ID of the request currently being served (set by RequestIdMiddleware)
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Per-record context understood by the formatters. "client" is an address,
# never a token.
CONTEXT_FIELDS = (
    "request_id",
    "client",
    "dimension",
    "reason",
    "path",
    "method",
    "status_code",
)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
STRUCTURED_FORMAT = (
    TEXT_FORMAT
    + " - request_id=%(request_id)s client=%(client)s"
    " dimension=%(dimension)s reason=%(reason)s"
)

# Third-party loggers held at WARNING regardless of LOG_LEVEL
QUIET_LOGGERS = ("uvicorn.access", "redis")


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON object.

    Context fields are included only when set, so an allowed request and a
    rejection produce differently shaped lines.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record the context attributes the formatters reference.

    Missing fields default to None; request_id falls back to the request
    being served.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, None)
        if record.request_id is None:
            record.request_id = request_id_context.get()
        return True


def get_logging_config(
    log_format: Optional[str] = None,
    log_level: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the dictConfig mapping.

    Args:
        log_format: "text", "structured" or "json" (defaults to LOG_FORMAT)
        log_level: Level name (defaults to LOG_LEVEL)

    Returns:
        Configuration dict for logging.config.dictConfig
    """
    log_format = (log_format or settings.log_format).lower()
    log_level = (log_level or settings.log_level).upper()

    if log_format == "json":
        formatter = {"()": "reqthrottle.app.core.logging.JSONFormatter"}
    elif log_format == "structured":
        formatter = {"format": STRUCTURED_FORMAT}
    else:
        formatter = {"format": TEXT_FORMAT}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "filters": {
            "context": {"()": "reqthrottle.app.core.logging.ContextFilter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "default",
                "stream": sys.stdout,
                "filters": ["context"],
            },
        },
        "loggers": {
            name: {"level": log_level, "handlers": ["console"], "propagate": False}
            for name in ("reqthrottle", "uvicorn")
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "reqthrottle") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    dimension: Optional[str] = None,
    reason: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for a log call, dropping unset values.

    Example:
        >>> logger.info(
        ...     "Key blocked",
        ...     extra=get_log_context(dimension="address", reason="address_limit_exceeded")
        ... )
    """
    context = {"request_id": request_id, "dimension": dimension, "reason": reason, **extra}
    return {k: v for k, v in context.items() if v is not None}
