"""
Logging setup for the Telehealth Admin Service.

Every record leaves the process as one line, JSON by default, tagged with the
id of the request that produced it. Values passed through `extra={...}` are
scrubbed before formatting: any key that names patient contact or identity
data (email, phone, date of birth, insurance numbers) or a credential is
replaced with "[REDACTED]", at any depth.

    {"timestamp": "2026-01-15T10:30:00.123Z", "level": "INFO",
     "logger": "telehealth_svc.services.form_service",
     "message": "Form submission stored", "request_id": "abc12345",
     "extra": {"form_id": "f1", "submission_id": "s9"}}

Level and format come from Settings (TELEHEALTH_SVC_LOG_LEVEL,
TELEHEALTH_SVC_LOG_FORMAT); main.py calls setup_logging() once at startup.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# =============================================================================
# REQUEST ID CONTEXT
# =============================================================================

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    """Bind `request_id` to the current request; LoggingMiddleware calls this first."""
    request_id_var.set(request_id)


def clear_request_id() -> None:
    request_id_var.set(None)


class RequestIdFilter(logging.Filter):
    """Stamps `record.request_id` so every formatter can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


# =============================================================================
# PHI SCRUBBING
# =============================================================================

REDACTED = "[REDACTED]"

# Matched against keys lowercased with "_" and "-" removed, so
# `dateOfBirth`, `date_of_birth` and `patient_email` are all caught
SENSITIVE_KEY_PARTS = (
    "firstname", "lastname", "fullname", "email", "phone", "dateofbirth",
    "address", "insurance", "policynumber", "groupnumber", "ssn",
    "apikey", "password", "secret", "authorization",
)


def is_sensitive_key(key: str) -> bool:
    normalized = key.lower().replace("_", "").replace("-", "")
    return any(part in normalized for part in SENSITIVE_KEY_PARTS)


def scrub(value: Any) -> Any:
    """Copy of `value` with sensitive mapping keys redacted, recursing into dicts and lists."""
    if isinstance(value, dict):
        return {
            key: REDACTED if isinstance(key, str) and is_sensitive_key(key) else scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [scrub(item) for item in value]
    return value


# =============================================================================
# FORMATTERS
# =============================================================================

# Attributes every LogRecord carries, plus those set by formatters and RequestIdFilter
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "request_id"}


def record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    """The scrubbed `extra={...}` fields of a record."""
    extra = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    return scrub(extra)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, UTC millisecond timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id and request_id != "-":
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra = record_extra(record)
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local development; extras appended as key=value."""

    def __init__(self):
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"
        line = super().format(record)
        extra = record_extra(record)
        if extra:
            line += " | " + " ".join(f"{key}={value}" for key, value in extra.items())
        return line


# =============================================================================
# SETUP
# =============================================================================

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Route all logging (the app's and uvicorn's) through one stdout handler.

    Args:
        level: Level for the root and `telehealth_svc` loggers.
        json_format: JSONFormatter when True, TextFormatter otherwise.
    """
    level = level.upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    logging.getLogger("telehealth_svc").setLevel(level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"level": level, "format": "json" if json_format else "text"}
    )
