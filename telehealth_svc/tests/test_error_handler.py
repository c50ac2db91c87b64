"""
Tests for error classification, rate limiting and routing to monitoring.
"""
import pytest

from telehealth_svc.services.error_handler import (
    ErrorHandler,
    ErrorSeverity,
    ErrorType,
    create_app_error,
    determine_error_type,
    determine_severity,
)
from telehealth_svc.services.rate_limiter import ErrorRateLimiter, RateLimiter


# =============================================================================
# CLASSIFICATION
# =============================================================================

@pytest.mark.parametrize("message,stack,expected", [
    ("Network request failed", None, ErrorType.NETWORK),
    ("Failed to fetch", None, ErrorType.NETWORK),
    ("Login session token expired", None, ErrorType.AUTHENTICATION),
    ("Permission denied on orders", None, ErrorType.AUTHORIZATION),
    ("Invalid date of birth", None, ErrorType.VALIDATION),
    ("Firestore query timed out", None, ErrorType.DATABASE),
    ("API returned 502", None, ErrorType.API),
    ("Cannot read properties of undefined", "at PatientCard (react-dom.js)", ErrorType.COMPONENT),
    ("Something odd happened", None, ErrorType.UNKNOWN),
])
def test_determine_error_type(message, stack, expected):
    assert determine_error_type(message, stack) == expected


def test_first_matching_type_wins():
    # "connection" (network) is checked before "database"
    assert determine_error_type("database connection reset") == ErrorType.NETWORK


@pytest.mark.parametrize("message,error_type,expected", [
    ("Token expired", ErrorType.AUTHENTICATION, ErrorSeverity.CRITICAL),
    ("Card payment declined", ErrorType.UNKNOWN, ErrorSeverity.CRITICAL),
    ("Query failed", ErrorType.DATABASE, ErrorSeverity.HIGH),
    ("Fatal render loop", ErrorType.COMPONENT, ErrorSeverity.HIGH),
    ("Bad gateway", ErrorType.API, ErrorSeverity.MEDIUM),
    ("Upload timeout", ErrorType.UNKNOWN, ErrorSeverity.MEDIUM),
    ("Field is required", ErrorType.VALIDATION, ErrorSeverity.LOW),
])
def test_determine_severity(message, error_type, expected):
    assert determine_severity(message, error_type) == expected


def test_create_app_error_respects_explicit_classification():
    error = create_app_error("Network down", error_type=ErrorType.API, severity=ErrorSeverity.LOW)
    assert error.type == ErrorType.API
    assert error.severity == ErrorSeverity.LOW
    assert error.component == "unknown"


# =============================================================================
# RATE LIMITER
# =============================================================================

class TestRateLimiter:
    """Sliding-window limiter with an injected clock."""

    def test_limits_within_window(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=lambda: now[0])
        assert limiter.is_allowed("k")[0]
        assert limiter.is_allowed("k")[0]
        allowed, retry_after = limiter.is_allowed("k")
        assert not allowed
        assert retry_after == pytest.approx(60)
        assert limiter.get_counts() == {"k": 2}

    def test_window_slides(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=lambda: now[0])
        assert limiter.is_allowed("k")[0]
        now[0] = 10.5
        assert limiter.is_allowed("k")[0]

    def test_keys_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("a")[0]
        assert limiter.is_allowed("b")[0]
        assert limiter.get_counts() == {"a": 1, "b": 1}

    def test_rejected_events_are_not_recorded(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=lambda: now[0])
        assert limiter.is_allowed("k")[0]
        now[0] = 5.0
        assert not limiter.is_allowed("k")[0]
        now[0] = 10.5
        assert limiter.is_allowed("k")[0]
        assert limiter.get_counts() == {"k": 1}

    def test_error_key_truncates_message(self):
        key = ErrorRateLimiter.key_for("TypeError", "x" * 300)
        assert key == "TypeError:" + "x" * 100


# =============================================================================
# ROUTING
# =============================================================================

class TestErrorHandler:
    """Severity decides how an error reaches monitoring."""

    @pytest.mark.asyncio
    async def test_low_severity_logged_as_warning(self, error_handler, monitoring):
        handled = await error_handler.handle_error(create_app_error("Invalid zip code", component="AddressForm"))
        assert handled.logged_as == "warning"
        assert not handled.rate_limited
        event = monitoring.event_queue[-1]
        assert event["level"] == "WARN"
        assert event["message"] == "validation error: Invalid zip code"
        assert event["component"] == "AddressForm"
        assert event["metadata"]["severity"] == "low"

    @pytest.mark.asyncio
    async def test_high_severity_logged_as_error(self, error_handler, monitoring):
        handled = await error_handler.handle_error(create_app_error("Database write failed"))
        assert handled.logged_as == "error"
        assert monitoring.event_queue[-1]["level"] == "ERROR"
        assert monitoring.event_queue[-1]["message"] == "Database write failed"

    @pytest.mark.asyncio
    async def test_critical_error_flushed_at_once(self, error_handler, monitoring):
        handled = await error_handler.handle_error(create_app_error("Payment capture rejected"))
        assert handled.error.severity == ErrorSeverity.CRITICAL
        assert monitoring.event_queue == []
        assert monitoring.flush_count == 1

    @pytest.mark.asyncio
    async def test_repeats_are_rate_limited(self, monitoring):
        handler = ErrorHandler(monitoring=monitoring, rate_limiter=ErrorRateLimiter(max_events=3, window_seconds=60))
        results = [await handler.handle_error(create_app_error("Chart crashed")) for _ in range(5)]
        assert [r.rate_limited for r in results] == [False, False, False, True, True]
        assert len(monitoring.event_queue) == 3
        assert handler.stats() == {"Error:Chart crashed": 3}

        handler.clear_stats()
        assert handler.stats() == {}

    @pytest.mark.asyncio
    async def test_handle_exception_uses_class_name(self, error_handler):
        handled = await error_handler.handle_exception(KeyError("patientId"), component="OrderForm")
        assert handled.error.name == "KeyError"
        assert handled.to_dict()["component"] == "OrderForm"
