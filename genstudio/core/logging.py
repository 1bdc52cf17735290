"""
JSON logging for the generation service.
Records carry the current HTTP request id (set by the request middleware) so a
submission, its provider calls and its poll ticks can be correlated.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import IO

from genstudio.core.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestContextFilter(logging.Filter):
    """Stamp records with the active request id unless the caller passed one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; only whitelisted extra fields are emitted."""

    # Credentials are never passed as extra, so they cannot leak through here
    EXTRA_FIELDS = (
        "request_id", "path", "method", "status_code", "latency_ms",
        "provider_id", "kind", "task_id", "model", "attempt", "max_attempts",
        "status", "outcome", "error", "error_kind", "error_code", "http_status",
        "payload_excerpt", "client_ip", "scope", "count", "limit", "ticks",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                continue
            entry[name] = value.value if isinstance(value, Enum) else value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None, stream: IO[str] | None = None) -> None:
    """Install JSON handlers on the root logger (stdout, plus a rotating file if LOG_FILE is set)."""
    formatter = JsonFormatter()
    context = RequestContextFilter()

    console = logging.StreamHandler(stream)
    handlers: list[logging.Handler] = [console]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)

    root = logging.getLogger()
    root.setLevel(level or settings.log_level)
    root.handlers = handlers
    # httpx logs full request URLs at INFO; pollinations puts the prompt in the path
    logging.getLogger("httpx").setLevel(logging.WARNING)
