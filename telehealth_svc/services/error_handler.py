"""
Classification and routing of client-reported errors.

ErrorHandler turns a reported error into an AppError (type + severity) using
substring heuristics on the message and stack, rate-limits repeats, then
routes it to the monitoring service:

    critical / high  -> MonitoringService.log_error (critical patterns flush at once)
    medium / low     -> MonitoringService.log_warning("{type} error: {message}")
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.services.monitoring_service import MonitoringService
from telehealth_svc.services.rate_limiter import ErrorRateLimiter

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    DATABASE = "database"
    API = "api"
    COMPONENT = "component"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Checked in order; first match wins
_MESSAGE_TYPE_KEYWORDS = (
    (ErrorType.NETWORK, ("network", "fetch", "connection")),
    (ErrorType.AUTHENTICATION, ("auth", "login", "token")),
    (ErrorType.AUTHORIZATION, ("permission", "forbidden", "unauthorized")),
    (ErrorType.VALIDATION, ("validation", "invalid", "required")),
    (ErrorType.DATABASE, ("database", "firestore", "query")),
    (ErrorType.API, ("api", "endpoint", "route")),
)


def determine_error_type(message: str, stack: Optional[str] = None) -> ErrorType:
    message = (message or "").lower()
    stack = (stack or "").lower()

    for error_type, keywords in _MESSAGE_TYPE_KEYWORDS:
        if any(k in message for k in keywords):
            return error_type
    if "react" in stack or "component" in stack or "render" in message:
        return ErrorType.COMPONENT
    return ErrorType.UNKNOWN


def determine_severity(message: str, error_type: ErrorType) -> ErrorSeverity:
    message = (message or "").lower()

    if error_type in (ErrorType.AUTHENTICATION, ErrorType.AUTHORIZATION) or any(
        k in message for k in ("critical", "security", "payment")
    ):
        return ErrorSeverity.CRITICAL
    if error_type == ErrorType.DATABASE or any(k in message for k in ("crash", "fatal", "corrupt")):
        return ErrorSeverity.HIGH
    if error_type in (ErrorType.API, ErrorType.NETWORK) or any(k in message for k in ("timeout", "failed")):
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


@dataclass
class AppError:
    """A classified error as routed to monitoring."""
    message: str
    type: ErrorType
    severity: ErrorSeverity
    name: str = "Error"
    component: str = "unknown"
    action: Optional[str] = None
    user_id: Optional[str] = None
    stack: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def monitoring_metadata(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "type": self.type.value,
            "severity": self.severity.value,
            "component": self.component,
        }
        if self.action:
            metadata["action"] = self.action
        metadata.update(self.metadata)
        return metadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "message": self.message,
            "type": self.type.value,
            "severity": self.severity.value,
            "component": self.component,
            "action": self.action,
            "timestamp": self.timestamp,
        }


@dataclass
class HandledError:
    """Outcome of ErrorHandler.handle_error."""
    error: AppError
    rate_limited: bool
    logged_as: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.error.to_dict(),
            "rateLimited": self.rate_limited,
            "loggedAs": self.logged_as,
        }


def create_app_error(
    message: str,
    name: str = "Error",
    stack: Optional[str] = None,
    error_type: Optional[ErrorType] = None,
    severity: Optional[ErrorSeverity] = None,
    component: Optional[str] = None,
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AppError:
    """Build an AppError, classifying type and severity unless given."""
    resolved_type = error_type or determine_error_type(message, stack)
    return AppError(
        message=message,
        name=name,
        type=resolved_type,
        severity=severity or determine_severity(message, resolved_type),
        component=component or "unknown",
        action=action,
        user_id=user_id,
        stack=stack,
        metadata=dict(metadata or {}),
    )


class ErrorHandler:
    """Classifies, rate-limits and routes reported errors to monitoring."""

    def __init__(self, monitoring: MonitoringService, rate_limiter: Optional[ErrorRateLimiter] = None):
        self._monitoring = monitoring
        self._rate_limiter = rate_limiter or ErrorRateLimiter()

    async def handle_error(self, error: AppError) -> HandledError:
        if not self._rate_limiter.allow(error.name, error.message):
            return HandledError(error=error, rate_limited=True, logged_as=None)

        fields = {"component": error.component, "user_id": error.user_id}
        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            event = await self._monitoring.log_error(
                error.message, error.monitoring_metadata(), stack=error.stack, **fields
            )
            logged_as = "error" if event is not None else None
        else:
            event = self._monitoring.log_warning(
                f"{error.type.value} error: {error.message}", error.monitoring_metadata(), **fields
            )
            logged_as = "warning" if event is not None else None

        if error.type in (ErrorType.NETWORK, ErrorType.AUTHENTICATION, ErrorType.API):
            logger.warning(
                f"{error.type.value.capitalize()} error detected",
                extra={"error_message": error.message, "severity": error.severity.value}
            )
        return HandledError(error=error, rate_limited=False, logged_as=logged_as)

    async def handle_exception(self, exc: BaseException, **context: Any) -> HandledError:
        """Classify and route a Python exception."""
        return await self.handle_error(create_app_error(
            message=str(exc) or exc.__class__.__name__,
            name=exc.__class__.__name__,
            **context,
        ))

    def stats(self) -> Dict[str, int]:
        """Events per rate-limit key inside the current window."""
        return self._rate_limiter.get_counts()

    def clear_stats(self) -> None:
        self._rate_limiter.reset()
