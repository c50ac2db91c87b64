"""
Shared exception classes and error handling utilities for the Telehealth Admin Service.

This module provides:
- Custom exception hierarchy for domain-specific errors
- Translation of document-store error codes into user-facing messages
- Exception handlers for FastAPI integration

Usage:
    from telehealth_svc.core.exceptions import DocumentNotFoundError, DataAccessError

    # In service layer - raise domain exceptions
    raise DocumentNotFoundError(collection="patients", document_id="abc")

    # In FastAPI - register handlers via setup_exception_handlers(app)
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================

class TelehealthServiceError(Exception):
    """
    Base exception for all Telehealth Admin Service domain errors.

    Provides consistent error structure with status code and detail message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            status_code: HTTP status code. Uses class default if not provided.
            **kwargs: Additional context to include in error response.
        """
        self.detail = detail or self.__class__.detail
        self.status_code = status_code or self.__class__.status_code
        self.context = {key: value for key, value in kwargs.items() if value is not None}
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result: Dict[str, Any] = {"detail": self.detail}
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# DOCUMENT STORE EXCEPTIONS
# =============================================================================

# Backend error code -> (user-facing message, HTTP status)
DATA_ERROR_CODES: Dict[str, tuple] = {
    "permission-denied": (
        "You do not have permission to perform this action",
        status.HTTP_403_FORBIDDEN,
    ),
    "not-found": (
        "The requested document was not found",
        status.HTTP_404_NOT_FOUND,
    ),
    "unavailable": (
        "The service is temporarily unavailable. Please try again",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    ),
    "deadline-exceeded": (
        "The request timed out. Please try again",
        status.HTTP_504_GATEWAY_TIMEOUT,
    ),
    "resource-exhausted": (
        "Too many requests. Please wait and try again",
        status.HTTP_429_TOO_MANY_REQUESTS,
    ),
    "already-exists": (
        "A document with this id already exists",
        status.HTTP_409_CONFLICT,
    ),
}


def translate_error_code(code: str, message: Optional[str] = None) -> str:
    """
    Translate a backend error code into a user-facing string.

    Unknown codes fall back to the backend's own message.
    """
    if code in DATA_ERROR_CODES:
        return DATA_ERROR_CODES[code][0]
    return message or "An unexpected error occurred"


class DataAccessError(TelehealthServiceError):
    """Raised when the document store rejects or fails an operation."""

    detail = "An unexpected error occurred"

    def __init__(
        self,
        code: str = "unknown",
        message: Optional[str] = None,
        collection: Optional[str] = None,
        **kwargs: Any
    ):
        self.code = code
        _, status_code = DATA_ERROR_CODES.get(code, (None, status.HTTP_500_INTERNAL_SERVER_ERROR))
        super().__init__(
            detail=translate_error_code(code, message),
            status_code=status_code,
            code=code,
            collection=collection,
            **kwargs
        )


class DocumentNotFoundError(DataAccessError):
    """Raised when a document id does not exist in its collection."""

    def __init__(
        self,
        collection: Optional[str] = None,
        document_id: Optional[str] = None,
        **kwargs: Any
    ):
        super().__init__(code="not-found", collection=collection, document_id=document_id, **kwargs)


class InvalidQueryError(TelehealthServiceError):
    """Raised when list query parameters cannot be turned into a store query."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid query"


class AuditLogImmutableError(TelehealthServiceError):
    """Raised on any attempt to modify or remove an audit log entry."""

    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    detail = "Audit log entries are append-only"


# =============================================================================
# FORM EXCEPTIONS
# =============================================================================

class FormSchemaInvalidError(TelehealthServiceError):
    """Raised when a form schema fails structural validation."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Form schema is invalid"

    def __init__(self, errors: Optional[List[Dict[str, str]]] = None, **kwargs: Any):
        super().__init__(errors=errors or [], **kwargs)


# =============================================================================
# AUTH EXCEPTIONS
# =============================================================================

class AuthenticationRequiredError(TelehealthServiceError):
    """Raised when an endpoint needs an authenticated session and got none."""

    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Missing API key. Include it in the X-API-Key header."


class InvalidCredentialsError(TelehealthServiceError):
    """Raised when the presented API key does not match."""

    status_code = status.HTTP_403_FORBIDDEN
    detail = "Invalid API key"


class InsufficientRoleError(TelehealthServiceError):
    """Raised when the session role is not allowed to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN
    detail = "Your role does not allow this action"


# =============================================================================
# CHANNEL EXCEPTIONS
# =============================================================================

class ChannelRequestError(TelehealthServiceError):
    """Raised when a channel request body cannot be processed."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request body"


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def telehealth_service_exception_handler(
    request: Request,
    exc: TelehealthServiceError
) -> JSONResponse:
    """
    Handle TelehealthServiceError exceptions and return consistent JSON responses.
    """
    logger.warning(
        f"TelehealthServiceError: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "context": exc.context
        }
    )
    headers = {"WWW-Authenticate": "ApiKey"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions with a generic error response.

    Logs the full exception for debugging but returns a safe error message.
    """
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred"}
    )


def setup_exception_handlers(app: FastAPI, catch_all: bool = False) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.
        catch_all: Also convert unexpected exceptions into a generic 500 body.
            Left off in tests so TestClient surfaces the original traceback.
    """
    app.add_exception_handler(TelehealthServiceError, telehealth_service_exception_handler)
    if catch_all:
        app.add_exception_handler(Exception, generic_exception_handler)
