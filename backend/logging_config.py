"""
Structured Logging Configuration for Horizon News.
JSON logs in production, plain text in development; both carry the
request id and the acting admin when there is one.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

# Context variables for request tracking
request_id_ctx: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
admin_email_ctx: ContextVar[Optional[str]] = ContextVar('admin_email', default=None)

# Attributes passed as extra={"extra_<name>": ...} are emitted as <name>
EXTRA_PREFIX = "extra_"

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio", "sqlalchemy.engine", "aiosqlite")


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key[len(EXTRA_PREFIX):]: value
        for key, value in record.__dict__.items()
        if key.startswith(EXTRA_PREFIX)
    }


def _context() -> dict[str, str]:
    context = {}
    request_id = request_id_ctx.get()
    if request_id:
        context["request_id"] = request_id
    admin_email = admin_email_ctx.get()
    if admin_email:
        context["admin"] = admin_email
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line for the log aggregator.

    Static ``extra_fields`` (app name, environment) are merged into every
    record.
    """

    def __init__(self, extra_fields: Optional[dict[str, Any]] = None):
        super().__init__()
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        log_data.update(_context())
        log_data.update(_extras(record))
        log_data.update(self.extra_fields)

        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        # Non-ASCII titles are written as-is
        return json.dumps(log_data, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        parts = [f"[{timestamp}]", record.levelname.ljust(8), record.name]

        context = _context()
        if "request_id" in context:
            parts.append(f"[{context['request_id'][:8]}]")
        if "admin" in context:
            parts.append(f"<{context['admin']}>")

        parts.extend(["-", record.getMessage()])

        duration_ms = getattr(record, "extra_duration_ms", None)
        if duration_ms is not None:
            parts.append(f"({duration_ms:.2f}ms)")

        message = " ".join(parts)
        if record.exc_info:
            message += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return message


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    extra_fields: Optional[dict[str, Any]] = None
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name
        format_type: "json" or "text"
        extra_fields: Static fields added to every JSON record
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    if format_type.lower() == "json":
        handler.setFormatter(JSONFormatter(extra_fields=extra_fields))
    else:
        handler.setFormatter(TextFormatter())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"extra_level": level, "extra_format": format_type}
    )


class RequestLogger:
    """Access log for inbound HTTP requests."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        client_ip: Optional[str] = None,
    ) -> None:
        """Log a finished request; 4xx as warning, 5xx as error."""
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        self.logger.log(
            level,
            f"{method} {path} -> {status_code}",
            extra={
                "extra_method": method,
                "extra_path": path,
                "extra_status_code": status_code,
                "extra_duration_ms": duration_ms,
                "extra_client_ip": client_ip,
                "extra_event": "request",
            }
        )


class MetricsLogger:
    """Fetch and cache events in a consistent shape for monitoring."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_fetch(
        self,
        method: str,
        url: str,
        attempts: int,
        success: bool,
        duration_ms: float,
        error: Optional[str] = None
    ) -> None:
        """One record per fetch_with_retry call, however many attempts it took."""
        outcome = "succeeded" if success else "failed"
        self.logger.log(
            logging.INFO if success else logging.WARNING,
            f"Fetch {method} {url} {outcome} after {attempts} attempt(s)",
            extra={
                "extra_method": method,
                "extra_url": url,
                "extra_attempts": attempts,
                "extra_success": success,
                "extra_duration_ms": duration_ms,
                "extra_error": error,
                "extra_event": "fetch",
            }
        )

    def log_cache_operation(
        self,
        operation: str,
        key: Optional[str] = None,
        hit: Optional[bool] = None,
        entries: Optional[int] = None,
    ) -> None:
        """Log a cache get (with hit/miss), set, or clear (with entries dropped)."""
        message = f"Cache {operation}"
        if hit is not None:
            message += " hit" if hit else " miss"
        if key is not None:
            message += f": {key}"
        if entries is not None:
            message += f" ({entries} entries)"

        self.logger.debug(
            message,
            extra={
                "extra_operation": operation,
                "extra_cache_key": key,
                "extra_cache_hit": hit,
                "extra_cache_entries": entries,
                "extra_event": "cache",
            }
        )


def get_request_logger() -> RequestLogger:
    return RequestLogger(logging.getLogger("horizon.requests"))


def get_metrics_logger() -> MetricsLogger:
    return MetricsLogger(logging.getLogger("horizon.metrics"))
