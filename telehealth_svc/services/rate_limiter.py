"""
Rate limiting for repeated error reports.

Provides per-key rate limiting so one error firing in a loop cannot flood the
monitoring queues. Uses an in-memory sliding window; a lock guards the maps
because sync endpoints run in FastAPI's thread pool.
"""
import logging
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from telehealth_svc.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Tracks event timestamps per key and allows at most `max_requests` of them
    within any `window_seconds` span.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        cleanup_interval: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Maximum number of events allowed within the window.
            window_seconds: Size of the sliding window in seconds.
            cleanup_interval: Seconds between cleanup of old entries.
            clock: Time source, replaceable in tests.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self._clock = clock

        # key -> list of event timestamps
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def _cleanup_old_entries(self, current_time: float) -> None:
        """Remove expired entries to prevent memory growth. Caller holds the lock."""
        if current_time - self._last_cleanup < self.cleanup_interval:
            return

        cutoff = current_time - self.window_seconds
        keys_to_remove = []

        for key, timestamps in self._requests.items():
            self._requests[key] = [ts for ts in timestamps if ts > cutoff]
            if not self._requests[key]:
                keys_to_remove.append(key)

        for key in keys_to_remove:
            del self._requests[key]

        self._last_cleanup = current_time
        logger.debug(f"Rate limiter cleanup: removed {len(keys_to_remove)} inactive keys")

    def is_allowed(self, key: str) -> Tuple[bool, Optional[float]]:
        """
        Check whether an event for `key` is allowed, recording it if so.

        Returns:
            Tuple of (is_allowed, retry_after_seconds).
            If allowed, retry_after is None.
        """
        with self._lock:
            current_time = self._clock()
            self._cleanup_old_entries(current_time)

            cutoff = current_time - self.window_seconds
            recent_timestamps = [ts for ts in self._requests[key] if ts > cutoff]

            if len(recent_timestamps) >= self.max_requests:
                oldest_in_window = min(recent_timestamps)
                retry_after = (oldest_in_window + self.window_seconds) - current_time
                self._requests[key] = recent_timestamps
                return False, max(0.1, retry_after)

            recent_timestamps.append(current_time)
            self._requests[key] = recent_timestamps
            return True, None

    def get_counts(self) -> Dict[str, int]:
        """Events currently inside the window, per key."""
        with self._lock:
            cutoff = self._clock() - self.window_seconds
            counts = {
                key: sum(1 for ts in timestamps if ts > cutoff)
                for key, timestamps in self._requests.items()
            }
        return {key: count for key, count in counts.items() if count}

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()


class ErrorRateLimiter(RateLimiter):
    """RateLimiter keyed by `errorName:message[:100]`, 10 per 60 seconds by default."""

    def __init__(
        self,
        max_events: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(
            max_requests=max_events or settings.monitoring_rate_limit_max_events,
            window_seconds=window_seconds or settings.monitoring_rate_limit_window_seconds,
            clock=clock,
        )

    @staticmethod
    def key_for(error_name: str, message: str) -> str:
        return f"{error_name}:{(message or '')[:100]}"

    def allow(self, error_name: str, message: str) -> bool:
        allowed, retry_after = self.is_allowed(self.key_for(error_name, message))
        if not allowed:
            logger.debug(
                "Error report rate limited",
                extra={"error_name": error_name, "retry_after": round(retry_after or 0, 2)}
            )
        return allowed
