"""
Health, readiness, and metrics endpoints for operational visibility.

This module provides:
- /health: Liveness probe (is the app running?)
- /ready: Readiness probe (is the document store reachable?)
- /metrics: Monitoring pipeline stats plus request metrics, as JSON
- /metrics/prometheus: Request metrics in Prometheus text format

No authentication required (infrastructure use).
"""
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.core.dependencies import get_database, get_error_handler, get_monitoring_service
from telehealth_svc.core.middleware import get_metrics_collector

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health & Observability"])

SERVICE_NAME = "Telehealth Admin Service"
SERVICE_VERSION = "1.0.0"


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    status: str  # "healthy"
    version: str
    timestamp: str


class DependencyStatus(BaseModel):
    name: str
    status: str  # "ok" or "unavailable"
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class ReadyResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    dependencies: List[DependencyStatus]
    timestamp: str


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/", summary="API root")
async def root() -> Dict[str, Any]:
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
        "metrics": "/metrics",
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns immediately without checking dependencies."
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=SERVICE_VERSION, timestamp=utc_now_iso())


def _check_database(db) -> DependencyStatus:
    start = time.perf_counter()
    healthy = db.ping()
    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    if healthy:
        return DependencyStatus(name="database", status="ok", latency_ms=latency_ms, message="SQLite document store healthy")
    logger.error("Database readiness check failed")
    return DependencyStatus(name="database", status="unavailable", latency_ms=latency_ms, message="Connection failed")


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks the document store. Returns 503 when it is unreachable."
)
async def readiness_check(response: Response, db=Depends(get_database)) -> ReadyResponse:
    db_status = _check_database(db)
    if db_status.status == "ok":
        status = "ready"
    else:
        status = "not_ready"
        response.status_code = 503
    return ReadyResponse(status=status, dependencies=[db_status], timestamp=utc_now_iso())


@router.get(
    "/metrics",
    summary="Service metrics",
    description="Monitoring queue/flush statistics, error rate-limit counts and HTTP request metrics."
)
async def get_metrics(
    monitoring=Depends(get_monitoring_service),
    error_handler=Depends(get_error_handler),
) -> Dict[str, Any]:
    return {
        "monitoring": monitoring.stats(),
        "errorRateLimits": error_handler.stats(),
        "http": get_metrics_collector().get_summary(),
        "timestamp": utc_now_iso(),
    }


@router.get("/metrics/prometheus", summary="Prometheus request metrics")
async def get_prometheus_metrics() -> Response:
    return Response(
        content=get_metrics_collector().get_prometheus_format(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
