"""Structured logging with request correlation."""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, ClassVar

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
log_context_var: ContextVar[dict[str, Any]] = ContextVar("log_context")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


def get_correlation_id() -> str | None:
    """Get the correlation ID bound to the current context."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context.

    Args:
        correlation_id: ID to bind. A UUID4 is generated when omitted.

    Returns:
        The bound correlation ID.
    """
    cid = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    try:
        return log_context_var.get().copy()
    except LookupError:
        return {}


def set_log_context(**kwargs: Any) -> None:
    """Add key-value pairs to the logging context of the current task."""
    log_context_var.set({**get_log_context(), **kwargs})


def clear_log_context() -> None:
    """Reset the logging context."""
    log_context_var.set({})


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, suitable for log shippers."""

    def __init__(self, *, service: str | None = None, include_path: bool = True):
        super().__init__()
        self.service = service
        self.include_path = include_path

    def format(self, record: logging.LogRecord) -> str:
        """Render the record, its context and its ``extra`` fields as JSON."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            payload["service"] = self.service
        if self.include_path:
            payload["path"] = f"{record.pathname}:{record.lineno}"

        cid = get_correlation_id()
        if cid:
            payload["correlation_id"] = cid

        context = get_log_context()
        if context:
            payload["context"] = context

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(_extra_fields(record))
        return json.dumps(payload, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Colored single-line output for local development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Render the record as ``time LEVEL [logger] [cid] message k=v``."""
        timestamp = datetime.fromtimestamp(record.created, UTC).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        color = self.COLORS.get(record.levelname, "")
        parts = [
            timestamp,
            f"{color}{record.levelname:8}{self.RESET}",
            f"[{record.name}]",
        ]

        cid = get_correlation_id()
        if cid:
            parts.append(f"[{cid[:8]}]")

        parts.append(record.getMessage())

        extras = {**get_log_context(), **_extra_fields(record)}
        if extras:
            parts.append(" ".join(f"{k}={v}" for k, v in extras.items()))

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(format_type: str, service: str | None = None) -> logging.Formatter:
    """Return the formatter for ``json`` or ``text`` output."""
    if format_type == "json":
        return JsonFormatter(service=service)
    return TextFormatter()


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    logger_name: str | None = None,
    service: str | None = None,
) -> logging.Logger:
    """Attach a stdout handler with the chosen formatter.

    Args:
        level: Log level name.
        format_type: ``json`` or ``text``.
        logger_name: Logger to configure. Root logger when omitted.
        service: Service name stamped on JSON records.

    Returns:
        The configured logger.
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(build_formatter(format_type, service))
    logger.addHandler(handler)

    # Named loggers own their handler; don't duplicate into root.
    logger.propagate = logger_name is None
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger by name (usually ``__name__``)."""
    return logging.getLogger(name)
