"""
FastAPI Dependency Injection configuration for the Telehealth Admin Service.

This module provides the dependency injection (DI) infrastructure:
- Clean separation between API, Service, and Repository layers
- Easy testing with mock/fake dependencies
- Application-wide singletons (database, query cache, monitoring, channels)
- Per-request repositories and services

Architecture Flow:
    API Layer (Routers)
         ↓ Depends()
    Service Layer (CollectionService, FormService, AuditService, ...)
         ↓ Injected
    Repository Layer (DocumentRepository, AuditLogRepository)
         ↓ Injected
    Database (SQLite document store)

Usage in Routers:
    from telehealth_svc.core.dependencies import get_form_service

    @router.post("/{form_id}/evaluate")
    async def evaluate(form_id: str, body: EvaluateRequest, forms: FormService = Depends(get_form_service)):
        return forms.evaluate(form_id, body.data)

Testing:
    # Point the singletons at a temporary database
    app.dependency_overrides[get_database] = lambda: test_database
"""
import logging
from typing import Optional

from fastapi import Depends

from telehealth_svc.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# SHARED INSTANCES
# =============================================================================

# Lazy imports avoid circular dependencies between core and the layers above it
_database_instance: Optional["Database"] = None
_query_cache_instance: Optional["QueryCache"] = None
_monitoring_instance: Optional["MonitoringService"] = None
_error_handler_instance: Optional["ErrorHandler"] = None
_channel_hub_instance: Optional["ChannelHub"] = None


def get_database() -> "Database":
    """
    Get the database instance (singleton pattern via FastAPI DI).

    Created on first use with WAL mode and the configured busy timeout.
    """
    global _database_instance

    if _database_instance is None:
        from telehealth_svc.repositories.base import Database

        logger.info(f"Initializing database: {settings.database_path}")
        _database_instance = Database(
            db_path=settings.database_path,
            busy_timeout=settings.telehealth_svc_db_busy_timeout
        )
        logger.info("Database initialized successfully")

    return _database_instance


def reset_database() -> None:
    """
    Reset the database instance (for testing only).

    This allows tests to inject a fresh database instance.
    """
    global _database_instance
    _database_instance = None


def get_query_cache() -> "QueryCache":
    """Get the query cache shared by every repository."""
    global _query_cache_instance

    if _query_cache_instance is None:
        from telehealth_svc.repositories.cache import QueryCache

        _query_cache_instance = QueryCache(ttl_seconds=settings.telehealth_svc_cache_ttl_seconds)
    return _query_cache_instance


def get_monitoring_service() -> "MonitoringService":
    """
    Get the application's MonitoringService.

    Flushed batches are stored through repositories built on get_database(),
    resolved at flush time so a database override applies.
    """
    global _monitoring_instance

    if _monitoring_instance is None:
        from telehealth_svc.services.monitoring_service import MonitoringService

        _monitoring_instance = MonitoringService(store_factory=_monitoring_store)
    return _monitoring_instance


def _monitoring_store(collection: str) -> "DocumentRepository":
    from telehealth_svc.repositories import DocumentRepository

    return DocumentRepository(db=get_database(), collection=collection, cache=get_query_cache())


def get_error_handler() -> "ErrorHandler":
    """Get the ErrorHandler; it owns the error rate limiter, so it is shared too."""
    global _error_handler_instance

    if _error_handler_instance is None:
        from telehealth_svc.services.error_handler import ErrorHandler

        _error_handler_instance = ErrorHandler(monitoring=get_monitoring_service())
    return _error_handler_instance


def get_channel_hub() -> "ChannelHub":
    global _channel_hub_instance

    if _channel_hub_instance is None:
        from telehealth_svc.services.channel_service import ChannelHub

        _channel_hub_instance = ChannelHub()
    return _channel_hub_instance


def reset_shared_services() -> None:
    """
    Drop the cache, monitoring, error handler and channel singletons (for testing only).
    """
    global _query_cache_instance, _monitoring_instance, _error_handler_instance, _channel_hub_instance
    _query_cache_instance = None
    _monitoring_instance = None
    _error_handler_instance = None
    _channel_hub_instance = None


# =============================================================================
# REPOSITORY DEPENDENCIES
# =============================================================================

def get_repository_factory(
    db=Depends(get_database),
    cache=Depends(get_query_cache),
):
    """
    Get a function that builds a DocumentRepository for a collection name.

    Routers serving many collections (see api.routers.collections) use this
    instead of one dependency per collection.
    """
    from telehealth_svc.repositories import DocumentRepository

    def build(collection: str) -> DocumentRepository:
        return DocumentRepository(db=db, collection=collection, cache=cache)

    return build


def get_audit_log_repository(
    db=Depends(get_database),
    cache=Depends(get_query_cache),
) -> "AuditLogRepository":
    """Get the append-only repository for audit log entries."""
    from telehealth_svc.repositories import AuditLogRepository

    return AuditLogRepository(db=db, cache=cache)


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================

def get_audit_service(
    audit_repository=Depends(get_audit_log_repository),
) -> "AuditService":
    from telehealth_svc.services.audit_service import AuditService

    return AuditService(audit_repository=audit_repository)


def get_form_service(
    build=Depends(get_repository_factory),
    audit_service=Depends(get_audit_service),
) -> "FormService":
    """
    Get a FormService with the form and submission repositories injected.
    """
    from telehealth_svc.services.form_service import FORMS_COLLECTION, SUBMISSIONS_COLLECTION, FormService

    return FormService(
        form_repository=build(FORMS_COLLECTION),
        submission_repository=build(SUBMISSIONS_COLLECTION),
        audit_service=audit_service,
    )


def collection_service_dependency(path: str):
    """
    Build a dependency returning the CollectionService for one registered collection.

    Raises:
        KeyError: If `path` is not in schemas.collections.COLLECTIONS.
    """
    from telehealth_svc.schemas.collections import get_collection_spec
    from telehealth_svc.services.collection_service import CollectionService

    spec = get_collection_spec(path)

    def get_collection_service(
        build=Depends(get_repository_factory),
        audit_service=Depends(get_audit_service),
    ) -> CollectionService:
        return CollectionService(spec=spec, repository=build(spec.collection), audit_service=audit_service)

    return get_collection_service


# =============================================================================
# DEPENDENCY OVERRIDE HELPERS (FOR TESTING)
# =============================================================================

class DependencyOverrides:
    """
    Context manager for temporarily overriding dependencies in tests.

    Usage:
        with DependencyOverrides(app) as overrides:
            overrides.set(get_database, lambda: test_database)
        # Overrides in place before the block are restored on exit
    """

    def __init__(self, app):
        self.app = app
        self._saved = {}

    def __enter__(self):
        self._saved = self.app.dependency_overrides.copy()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.app.dependency_overrides = self._saved

    def set(self, dependency, override):
        self.app.dependency_overrides[dependency] = override

    def clear(self):
        """Drop overrides made inside the block."""
        self.app.dependency_overrides = self._saved.copy()
