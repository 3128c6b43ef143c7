"""One JSON object per log line, stamped with the current request id.

Extra fields passed through ``extra=`` are emitted under ``"extra"``. Values
whose key looks like a credential are blanked, and email addresses are masked
so customer contact data does not end up in log storage.
"""
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REDACTED = "********"
_CREDENTIAL_MARKERS = ("password", "secret", "token", "authorization", "guest_session")
_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "request_id"}
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosmtplib")


def mask_email(address: str | None) -> str:
    """``anna@example.com`` -> ``an***@example.com``."""
    if address and "@" in address:
        local, domain = address.rsplit("@", 1)
        return local[:2] + "***@" + domain
    return "***"


def redact(key: str, value: Any) -> Any:
    name = key.lower()
    if any(marker in name for marker in _CREDENTIAL_MARKERS):
        return REDACTED
    if "email" in name and isinstance(value, str):
        return mask_email(value)
    if isinstance(value, dict):
        return {k: redact(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(key, v) for v in value]
    return value


class RequestIdFilter(logging.Filter):
    """Copy the request id of the running task onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", "")
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: redact(key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> logging.Handler:
    """Route every logger through a single JSON handler on stdout."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
