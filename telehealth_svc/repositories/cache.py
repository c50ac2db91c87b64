"""
In-process TTL cache for collection reads.

Entries are keyed by (collection, query key) and expire after `ttl_seconds`.
Any mutation of a collection drops every entry for that collection, so a read
after a write never sees the pre-write result. Each invalidation also bumps the
collection's generation; a load that started before the bump is not cached.

Thread-safe: FastAPI runs sync endpoints in a thread pool.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from telehealth_svc.core.config import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

_MISSING = object()


class QueryCache:
    """TTL cache for repository query results."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[float, Any]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, collection: str, key: str, default: Any = None) -> Any:
        """Return the cached value, or `default` when missing or stale."""
        with self._lock:
            entry = self._entries.get((collection, key), _MISSING)
            if entry is _MISSING:
                self.misses += 1
                return default
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[(collection, key)]
                self.misses += 1
                return default
            self.hits += 1
            return value

    def generation(self, collection: str) -> Tuple[int, int]:
        """Token that changes whenever `collection` is invalidated or the cache cleared."""
        with self._lock:
            return self._epoch, self._generations.get(collection, 0)

    def set(self, collection: str, key: str, value: Any, generation: Optional[Tuple[int, int]] = None) -> bool:
        """
        Store a value. With `generation`, the value is dropped if the collection
        was invalidated since that token was taken. Returns whether it was stored.
        """
        if self.ttl_seconds <= 0:
            return False
        with self._lock:
            if generation is not None and generation != (self._epoch, self._generations.get(collection, 0)):
                return False
            self._entries[(collection, key)] = (self._clock(), value)
        return True

    def get_or_load(self, collection: str, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value or compute, store and return it."""
        value = self.get(collection, key, _MISSING)
        if value is _MISSING:
            generation = self.generation(collection)
            value = loader()
            if not self.set(collection, key, value, generation) and self.ttl_seconds > 0:
                logger.debug("Discarded query result loaded across a write", extra={"collection": collection})
        return value

    def invalidate(self, collection: str) -> int:
        """Drop all entries for `collection`. Returns the number removed."""
        with self._lock:
            self._generations[collection] = self._generations.get(collection, 0) + 1
            stale = [k for k in self._entries if k[0] == collection]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Query cache invalidated", extra={"collection": collection, "entries": len(stale)})
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        return {"size": size, "hits": self.hits, "misses": self.misses, "ttl_seconds": self.ttl_seconds}
