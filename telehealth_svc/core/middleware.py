"""
FastAPI middleware for observability.

This module provides:
- Request/Response logging with request_id propagation
- Request timing, kept in an in-memory collector for /metrics and forwarded
  to the MonitoringService as `http_request` performance metrics

Middleware Stack Order (in main.py):
    1. LoggingMiddleware (outermost - captures everything)
    2. CORS Middleware
    3. Application routes
"""

import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from telehealth_svc.core.dependencies import get_monitoring_service
from telehealth_svc.core.logging_config import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


# =============================================================================
# IN-MEMORY METRICS COLLECTOR
# =============================================================================

@dataclass
class RequestMetrics:
    """Container for a single request's metrics."""
    method: str
    path: str
    status_code: int
    duration_ms: float
    request_id: str


@dataclass
class MetricsCollector:
    """
    In-memory request metrics with a fixed-size latency buffer.

    Counters cover every request since startup; percentiles cover the last
    `max_history` requests.
    """
    max_history: int = 1000

    _requests: Deque[RequestMetrics] = field(default_factory=lambda: deque(maxlen=1000))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    total_requests: int = 0
    total_2xx: int = 0
    total_4xx: int = 0
    total_5xx: int = 0

    def __post_init__(self):
        if self._requests.maxlen != self.max_history:
            self._requests = deque(self._requests, maxlen=self.max_history)

    def record_request(self, metrics: RequestMetrics) -> None:
        with self._lock:
            self._requests.append(metrics)
            self.total_requests += 1

            if 200 <= metrics.status_code < 300:
                self.total_2xx += 1
            elif 400 <= metrics.status_code < 500:
                self.total_4xx += 1
            elif 500 <= metrics.status_code < 600:
                self.total_5xx += 1

    def get_latency_percentiles(self) -> Dict[str, float]:
        """p50, p95, p99 latencies in milliseconds; 0 when there is no data."""
        with self._lock:
            durations = sorted(r.duration_ms for r in self._requests)
        if not durations:
            return {"p50": 0, "p95": 0, "p99": 0}

        n = len(durations)

        def percentile(p: float) -> float:
            idx = int(n * p / 100)
            return durations[min(idx, n - 1)]

        return {
            "p50": round(percentile(50), 2),
            "p95": round(percentile(95), 2),
            "p99": round(percentile(99), 2),
        }

    def get_summary(self) -> Dict[str, Any]:
        latencies = self.get_latency_percentiles()
        return {
            "requestsTotal": self.total_requests,
            "requests2xx": self.total_2xx,
            "requests4xx": self.total_4xx,
            "requests5xx": self.total_5xx,
            "durationMsP50": latencies["p50"],
            "durationMsP95": latencies["p95"],
            "durationMsP99": latencies["p99"],
        }

    def get_prometheus_format(self) -> str:
        """Export request metrics in Prometheus text format."""
        summary = self.get_summary()
        lines = [
            "# HELP http_requests_total Total HTTP requests",
            "# TYPE http_requests_total counter",
            f'http_requests_total {summary["requestsTotal"]}',
            "",
            "# HELP http_requests_by_status HTTP requests by status category",
            "# TYPE http_requests_by_status counter",
            f'http_requests_by_status{{status="2xx"}} {summary["requests2xx"]}',
            f'http_requests_by_status{{status="4xx"}} {summary["requests4xx"]}',
            f'http_requests_by_status{{status="5xx"}} {summary["requests5xx"]}',
            "",
            "# HELP http_request_duration_ms Request duration in milliseconds",
            "# TYPE http_request_duration_ms gauge",
            f'http_request_duration_ms{{quantile="0.5"}} {summary["durationMsP50"]}',
            f'http_request_duration_ms{{quantile="0.95"}} {summary["durationMsP95"]}',
            f'http_request_duration_ms{{quantile="0.99"}} {summary["durationMsP99"]}',
        ]
        return "\n".join(lines) + "\n"


metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return metrics_collector


# =============================================================================
# LOGGING MIDDLEWARE
# =============================================================================

class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/Response logging middleware with request_id propagation.

    - Generates a short request_id per request and exposes it in X-Request-ID
    - Logs request start and completion as structured records
    - Records latency in the metrics collector and, for API paths, as an
      `http_request` performance metric in the MonitoringService
    """

    # Probe and docs paths are timed but not logged or forwarded to monitoring
    EXCLUDED_PATHS = {"/health", "/ready", "/metrics", "/metrics/prometheus", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        set_request_id(request_id)

        method = request.method
        path = request.url.path
        start_time = time.perf_counter()

        if path not in self.EXCLUDED_PATHS:
            logger.info(
                "Request started",
                extra={
                    "method": method,
                    "path": path,
                    "query": str(request.query_params) if request.query_params else None,
                }
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with exception",
                extra={"method": method, "path": path, "error": str(e)}
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            clear_request_id()

        status_code = response.status_code
        metrics_collector.record_request(RequestMetrics(
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
            request_id=request_id,
        ))

        if path not in self.EXCLUDED_PATHS:
            get_monitoring_service().record_performance(
                "http_request",
                round(duration_ms, 2),
                "ms",
                {"method": method, "path": path, "status": status_code},
            )
            log_level = logging.WARNING if status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                "Request completed",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        response.headers["X-Request-ID"] = request_id
        return response
