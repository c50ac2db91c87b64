"""
Shared pytest fixtures for service and API tests.

Key patterns:

1. Database Isolation: Each test gets a fresh temporary SQLite document store
2. DI Override: app.dependency_overrides injects the test database, cache and
   shared services into the real routers
3. Auth Override: get_auth_session is replaced so most tests run as an
   authenticated admin without sending X-API-Key

Fixture Hierarchy:
    temp_db → query_cache → repositories → services → test_app → client
"""
import os
import tempfile

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set test API key before importing config modules
# This must happen before any config imports
TEST_API_KEY = "test-api-key-for-testing-purposes-12345678"
os.environ.setdefault("TELEHEALTH_SVC_API_KEY", TEST_API_KEY)

from telehealth_svc.core import dependencies as deps
from telehealth_svc.core.auth import Authenticated, Role, get_auth_session
from telehealth_svc.core.exceptions import setup_exception_handlers
from telehealth_svc.repositories import AuditLogRepository, DocumentRepository, QueryCache
from telehealth_svc.repositories.base import Database
from telehealth_svc.services.audit_service import AuditService
from telehealth_svc.services.channel_service import ChannelHub
from telehealth_svc.services.error_handler import ErrorHandler
from telehealth_svc.services.form_service import FORMS_COLLECTION, SUBMISSIONS_COLLECTION, FormService
from telehealth_svc.services.monitoring_service import MonitoringService
from telehealth_svc.services.rate_limiter import ErrorRateLimiter

ADMIN_SESSION = Authenticated(user_id="test-admin", role=Role.ADMIN)
STAFF_SESSION = Authenticated(user_id="test-staff", role=Role.STAFF)


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    This fixture creates a fresh SQLite database in a temp file,
    ensuring complete isolation between tests.
    """
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    db = Database(db_path=db_path)
    yield db

    # WAL mode leaves side files next to the database
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            os.unlink(path)


@pytest.fixture
def query_cache():
    return QueryCache(ttl_seconds=300)


@pytest.fixture
def repo_factory(temp_db, query_cache):
    """Build a DocumentRepository for any collection on the test database."""
    def build(collection: str) -> DocumentRepository:
        return DocumentRepository(db=temp_db, collection=collection, cache=query_cache)
    return build


@pytest.fixture
def audit_repo(temp_db, query_cache):
    return AuditLogRepository(db=temp_db, cache=query_cache)


@pytest.fixture
def audit_service(audit_repo):
    return AuditService(audit_repository=audit_repo)


@pytest.fixture
def form_service(repo_factory, audit_service):
    return FormService(
        form_repository=repo_factory(FORMS_COLLECTION),
        submission_repository=repo_factory(SUBMISSIONS_COLLECTION),
        audit_service=audit_service,
    )


@pytest.fixture
def monitoring(repo_factory):
    """MonitoringService storing flushed batches in the test database, no remote sink."""
    return MonitoringService(store_factory=repo_factory, remote_url="", session_id="test-session")


@pytest.fixture
def error_handler(monitoring):
    return ErrorHandler(monitoring=monitoring, rate_limiter=ErrorRateLimiter(max_events=10, window_seconds=60))


@pytest.fixture
def channel_hub():
    return ChannelHub()


def _build_app() -> FastAPI:
    from telehealth_svc.api.routers import (
        audit_router,
        channel_router,
        collection_routers,
        forms_router,
        health_router,
        monitoring_router,
    )

    app = FastAPI(title="Telehealth Admin Service Test")

    # Register exception handlers (same as production)
    setup_exception_handlers(app)

    # Include the real routers (not test copies)
    app.include_router(health_router)
    for router in collection_routers:
        app.include_router(router)
    app.include_router(forms_router)
    app.include_router(audit_router)
    app.include_router(monitoring_router)
    app.include_router(channel_router)
    return app


@pytest.fixture
def test_app(temp_db, query_cache, monitoring, error_handler, channel_hub):
    """
    Create a FastAPI test app with dependency overrides.

    Uses the real routers and injects the test database and shared services
    via dependency_overrides. Requests run as an authenticated admin.
    """
    app = _build_app()

    app.dependency_overrides[deps.get_database] = lambda: temp_db
    app.dependency_overrides[deps.get_query_cache] = lambda: query_cache
    app.dependency_overrides[deps.get_monitoring_service] = lambda: monitoring
    app.dependency_overrides[deps.get_error_handler] = lambda: error_handler
    app.dependency_overrides[deps.get_channel_hub] = lambda: channel_hub

    async def admin_session():
        return ADMIN_SESSION
    app.dependency_overrides[get_auth_session] = admin_session

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client for the API."""
    return TestClient(test_app)


@pytest.fixture
def staff_client(test_app):
    """Test client whose session has the staff role."""
    async def staff_session():
        return STAFF_SESSION
    test_app.dependency_overrides[get_auth_session] = staff_session
    return TestClient(test_app)


@pytest.fixture
def unauthenticated_client(test_app):
    """Test client that goes through the real X-API-Key check."""
    del test_app.dependency_overrides[get_auth_session]
    return TestClient(test_app)
