"""
Core module for application configuration, logging, and shared constants.

This module provides:
- Settings: Application configuration via pydantic-settings
- Dependency injection: FastAPI Depends() functions for services and repositories
- Exceptions: Domain-specific exception classes with HTTP status codes
- Datetime utilities: UTC-first datetime handling
- Vital registry: Vital-sign reference ranges used by form validation
"""
from telehealth_svc.core.config import settings, Settings

# Dependency injection - import functions for FastAPI Depends()
from telehealth_svc.core.dependencies import (
    get_database,
    get_query_cache,
    get_monitoring_service,
    get_error_handler,
    get_channel_hub,
    get_audit_service,
    get_form_service,
    reset_database,
    reset_shared_services,
)

# Exception classes for consistent error handling
from telehealth_svc.core.exceptions import (
    TelehealthServiceError,
    DataAccessError,
    DocumentNotFoundError,
    InvalidQueryError,
    AuditLogImmutableError,
    FormSchemaInvalidError,
    AuthenticationRequiredError,
    InvalidCredentialsError,
    InsufficientRoleError,
    ChannelRequestError,
    setup_exception_handlers,
)

# UTC datetime utilities
from telehealth_svc.core.datetime_utils import (
    utc_now,
    utc_now_iso,
    to_utc,
    parse_datetime,
    format_iso,
)
from telehealth_svc.core.config import (
    # Backwards-compatible exports
    DATABASE_PATH,
    API_HOST,
    API_PORT,
    API_RELOAD,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    CACHE_TTL_SECONDS,
)

# Vital registry exports
from telehealth_svc.core.vital_registry import (
    VitalDefinition,
    get_vital,
    find_vital,
    list_vitals,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Dependency injection
    "get_database",
    "get_query_cache",
    "get_monitoring_service",
    "get_error_handler",
    "get_channel_hub",
    "get_audit_service",
    "get_form_service",
    "reset_database",
    "reset_shared_services",
    # Exceptions
    "TelehealthServiceError",
    "DataAccessError",
    "DocumentNotFoundError",
    "InvalidQueryError",
    "AuditLogImmutableError",
    "FormSchemaInvalidError",
    "AuthenticationRequiredError",
    "InvalidCredentialsError",
    "InsufficientRoleError",
    "ChannelRequestError",
    "setup_exception_handlers",
    # Datetime utilities
    "utc_now",
    "utc_now_iso",
    "to_utc",
    "parse_datetime",
    "format_iso",
    # Backwards-compatible exports
    "DATABASE_PATH",
    "API_HOST",
    "API_PORT",
    "API_RELOAD",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "CACHE_TTL_SECONDS",
    # Vital registry exports
    "VitalDefinition",
    "get_vital",
    "find_vital",
    "list_vitals",
]
