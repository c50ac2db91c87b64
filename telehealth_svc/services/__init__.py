"""
Service layer for business logic.

This module contains all business logic and orchestration services.

The form validation engine lives in its own subpackage:
- from telehealth_svc.services.forms import FormValidator, validate_form_schema
"""
from telehealth_svc.services.audit_service import AuditService
from telehealth_svc.services.channel_service import ChannelHub
from telehealth_svc.services.collection_service import CollectionService
from telehealth_svc.services.error_handler import ErrorHandler, ErrorSeverity, ErrorType
from telehealth_svc.services.form_service import FormService
from telehealth_svc.services.monitoring_service import MonitoringService
from telehealth_svc.services.rate_limiter import ErrorRateLimiter, RateLimiter

__all__ = [
    "AuditService",
    "ChannelHub",
    "CollectionService",
    "ErrorHandler",
    "ErrorRateLimiter",
    "ErrorSeverity",
    "ErrorType",
    "FormService",
    "MonitoringService",
    "RateLimiter",
]
