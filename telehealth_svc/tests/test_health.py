"""
Tests for health, readiness, and metrics endpoints.

These tests verify the observability endpoints work correctly:
- /health: Liveness probe
- /ready: Readiness probe with the document store check
- /metrics: Monitoring and request metrics as JSON
- /metrics/prometheus: Prometheus-format request metrics
- /: Root endpoint with API info
"""
from unittest.mock import patch

from telehealth_svc.core.middleware import MetricsCollector, RequestMetrics
from telehealth_svc.repositories.base import Database


# =============================================================================
# ROOT ENDPOINT TESTS
# =============================================================================

def test_root_endpoint(client):
    """Test the root endpoint returns API info."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "Telehealth Admin Service"
    assert data["version"] == "1.0.0"
    # Verify links to other endpoints
    assert "health" in data
    assert "ready" in data
    assert "metrics" in data


# =============================================================================
# HEALTH ENDPOINT TESTS (LIVENESS)
# =============================================================================

def test_health_endpoint(client):
    """Test the /health liveness endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert "timestamp" in data


def test_health_needs_no_api_key(unauthenticated_client):
    assert unauthenticated_client.get("/health").status_code == 200


# =============================================================================
# READINESS ENDPOINT TESTS
# =============================================================================

def test_ready_endpoint(client):
    """Test /ready reports the test database as reachable."""
    response = client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["dependencies"][0]["name"] == "database"
    assert data["dependencies"][0]["status"] == "ok"


def test_ready_endpoint_database_down(client):
    """Test /ready returns 503 when the ping fails."""
    with patch.object(Database, "ping", return_value=False):
        response = client.get("/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["dependencies"][0]["status"] == "unavailable"


# =============================================================================
# METRICS ENDPOINT TESTS
# =============================================================================

def test_metrics_json_endpoint(client, monitoring):
    """Test /metrics includes monitoring stats and request metrics."""
    monitoring.log_info("Orders page opened")
    response = client.get("/metrics")
    assert response.status_code == 200
    data = response.json()
    assert data["monitoring"]["queued"]["events"] == 1
    assert data["monitoring"]["sessionId"] == "test-session"
    assert data["errorRateLimits"] == {}
    assert "requestsTotal" in data["http"]
    assert "timestamp" in data


def test_prometheus_endpoint(client):
    """Test the Prometheus text endpoint."""
    response = client.get("/metrics/prometheus")
    assert response.status_code == 200
    assert "text/plain" in response.headers.get("content-type", "")
    content = response.text
    assert "http_requests_total" in content
    assert "http_request_duration_ms" in content


# =============================================================================
# METRICS COLLECTOR TESTS
# =============================================================================

def test_metrics_collector_summary():
    collector = MetricsCollector()
    for status_code, duration in [(200, 10.0), (201, 20.0), (404, 5.0), (500, 100.0)]:
        collector.record_request(RequestMetrics(
            method="GET", path="/api/v1/patients", status_code=status_code, duration_ms=duration, request_id="abc",
        ))
    summary = collector.get_summary()
    assert summary["requestsTotal"] == 4
    assert summary["requests2xx"] == 2
    assert summary["requests4xx"] == 1
    assert summary["requests5xx"] == 1
