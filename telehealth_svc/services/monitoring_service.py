"""
Monitoring service: batched error/warning/info events, performance metrics
and user actions.

Items are queued in memory and flushed:
- every `flush_interval_seconds` by a background asyncio task (start()/stop()
  are called from the application lifespan)
- immediately when an error matches a critical pattern
- on demand via flush()

A flush writes each batch to the local document store (collections
monitoring_events / monitoring_performance / monitoring_actions, trimmed to the
newest `local_store_limit` entries) and, when `remote_url` is configured, POSTs
`{events, performances, actions}` to it with httpx. A failed sink is retried on
its own: up to the last 25 items of each batch go back to the front of their
queue (local store failure) or into the remote backlog (remote failure),
provided that queue holds fewer than 50 items. Nothing is stored twice.
"""
import asyncio
import logging
import re
import time
import traceback
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from telehealth_svc.core.config import settings
from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.core.exceptions import DataAccessError
from telehealth_svc.repositories.document_repository import DocumentRepository
from telehealth_svc.repositories.query import QueryOptions

logger = logging.getLogger(__name__)

EVENTS_COLLECTION = "monitoring_events"
PERFORMANCE_COLLECTION = "monitoring_performance"
ACTIONS_COLLECTION = "monitoring_actions"

# Batch key -> local collection
KIND_COLLECTIONS = {
    "events": EVENTS_COLLECTION,
    "performances": PERFORMANCE_COLLECTION,
    "actions": ACTIONS_COLLECTION,
}
QUEUE_ATTRS = {"events": "event_queue", "performances": "performance_queue", "actions": "action_queue"}

PERFORMANCE_UNITS = ("ms", "bytes", "count")

CRITICAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"authentication",
        r"authorization",
        r"payment",
        r"billing",
        r"security",
        r"firebase.*permission",
    )
]

# Events about the monitoring pipeline itself are dropped
LOOP_GUARD_TOKEN = "monitoring"

REQUEUE_LIMIT = 25
REQUEUE_THRESHOLD = 50

StoreFactory = Callable[[str], DocumentRepository]


def _empty_batch() -> Dict[str, List[Dict[str, Any]]]:
    return {kind: [] for kind in KIND_COLLECTIONS}


def is_critical(message: str, stack: Optional[str] = None) -> bool:
    return any(p.search(message or "") or p.search(stack or "") for p in CRITICAL_PATTERNS)


@dataclass
class FlushResult:
    events: int = 0
    performances: int = 0
    actions: int = 0
    success: bool = True
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": self.events,
            "performances": self.performances,
            "actions": self.actions,
            "success": self.success,
            "error": self.error,
        }


class MonitoringService:
    """
    Queue-and-flush monitoring sink.

    One instance is shared by the application (see core.dependencies).
    """

    def __init__(
        self,
        store_factory: Optional[StoreFactory] = None,
        remote_url: Optional[str] = None,
        remote_timeout: Optional[float] = None,
        flush_interval_seconds: Optional[float] = None,
        local_store_limit: Optional[int] = None,
        session_id: Optional[str] = None,
    ):
        """
        Args:
            store_factory: Builds the repository for a monitoring collection.
                Local storage is skipped when None.
            remote_url: Endpoint receiving flushed batches; no remote sink when None.
            remote_timeout: Seconds before the remote POST gives up.
            flush_interval_seconds: Period of the background flush task.
            local_store_limit: Entries kept per local monitoring collection.
            session_id: Identifier attached to every event.
        """
        self._store_factory = store_factory
        self.remote_url = remote_url if remote_url is not None else settings.monitoring_remote_url
        self.remote_timeout = remote_timeout or settings.monitoring_remote_timeout
        self.flush_interval_seconds = flush_interval_seconds or settings.monitoring_flush_interval_seconds
        self.local_store_limit = local_store_limit or settings.monitoring_local_store_limit
        self.session_id = session_id or f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"

        self.event_queue: List[Dict[str, Any]] = []
        self.performance_queue: List[Dict[str, Any]] = []
        self.action_queue: List[Dict[str, Any]] = []
        # Stored locally already, waiting for the remote sink
        self.remote_backlog: Dict[str, List[Dict[str, Any]]] = _empty_batch()

        self._flush_lock = asyncio.Lock()
        self._flush_task: Optional[asyncio.Task] = None

        self.total_events = 0
        self.total_performances = 0
        self.total_actions = 0
        self.dropped_events = 0
        self.flush_count = 0
        self.flush_failures = 0
        self.last_flush_at: Optional[str] = None

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def _event(self, level: str, message: str, **fields: Any) -> Dict[str, Any]:
        event = {
            "level": level,
            "message": message,
            "timestamp": utc_now_iso(),
            "sessionId": fields.pop("session_id", None) or self.session_id,
        }
        for key, value in (
            ("userId", fields.get("user_id")),
            ("url", fields.get("url")),
            ("userAgent", fields.get("user_agent")),
            ("component", fields.get("component")),
            ("stack", fields.get("stack")),
            ("metadata", fields.get("metadata")),
        ):
            if value:
                event[key] = value
        return event

    def _enqueue_event(self, event: Dict[str, Any]) -> bool:
        if LOOP_GUARD_TOKEN in event["message"] or LOOP_GUARD_TOKEN in event.get("stack", ""):
            self.dropped_events += 1
            logger.debug("Dropped monitoring self-report", extra={"level": event["level"]})
            return False
        self.event_queue.append(event)
        self.total_events += 1
        return True

    async def log_error(
        self,
        error: Any,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        stack: Optional[str] = None,
        **fields: Any,
    ) -> Optional[Dict[str, Any]]:
        """
        Queue an ERROR event; flush right away when it matches a critical pattern.

        Args:
            error: An exception or a message string.
            metadata: Free-form context stored with the event.
            stack: Stack trace text; taken from the exception when omitted.
            **fields: user_id, url, user_agent, component, session_id.

        Returns:
            The queued event, or None when the loop guard dropped it.
        """
        if isinstance(error, BaseException):
            message = str(error) or error.__class__.__name__
            if stack is None and error.__traceback__ is not None:
                stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            message = str(error)

        event = self._event("ERROR", message, stack=stack, metadata=metadata, **fields)
        if not self._enqueue_event(event):
            return None
        logger.error("Monitoring error recorded", extra={"event_message": message})

        if is_critical(message, stack):
            logger.warning("Critical error reported - flushing immediately")
            await self.flush()
        return event

    def log_warning(self, message: str, metadata: Optional[Dict[str, Any]] = None, **fields: Any) -> Optional[Dict[str, Any]]:
        event = self._event("WARN", message, metadata=metadata, **fields)
        if not self._enqueue_event(event):
            return None
        logger.warning("Monitoring warning recorded", extra={"event_message": message})
        return event

    def log_info(self, message: str, metadata: Optional[Dict[str, Any]] = None, **fields: Any) -> Optional[Dict[str, Any]]:
        event = self._event("INFO", message, metadata=metadata, **fields)
        if not self._enqueue_event(event):
            return None
        logger.info("Monitoring info recorded", extra={"event_message": message})
        return event

    def record_performance(
        self,
        name: str,
        value: float,
        unit: str = "ms",
        tags: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Queue a performance metric.

        Raises:
            ValueError: If `unit` is not one of ms, bytes, count.
        """
        if unit not in PERFORMANCE_UNITS:
            raise ValueError(f"Unsupported performance unit: '{unit}'")
        metric: Dict[str, Any] = {"name": name, "value": value, "unit": unit, "timestamp": utc_now_iso()}
        if tags:
            metric["tags"] = tags
        self.performance_queue.append(metric)
        self.total_performances += 1
        return metric

    def track_user_action(
        self,
        action: str,
        component: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"action": action, "component": component, "timestamp": utc_now_iso()}
        if user_id:
            entry["userId"] = user_id
        if metadata:
            entry["metadata"] = metadata
        self.action_queue.append(entry)
        self.total_actions += 1
        return entry

    def start_timer(self, name: str, tags: Optional[Dict[str, Any]] = None) -> Callable[[], float]:
        """Start a timer; calling the returned function records the elapsed ms and returns it."""
        started = time.perf_counter()

        def stop() -> float:
            duration_ms = (time.perf_counter() - started) * 1000
            self.record_performance(name, duration_ms, "ms", tags)
            return duration_ms

        return stop

    @contextmanager
    def measure(self, name: str, tags: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        """Record the duration of the `with` block, even when it raises."""
        stop = self.start_timer(name, tags)
        try:
            yield
        finally:
            stop()

    # -------------------------------------------------------------------------
    # Flushing
    # -------------------------------------------------------------------------

    def _store_locally(self, collection: str, items: List[Dict[str, Any]]) -> None:
        if not items or self._store_factory is None:
            return
        repo = self._store_factory(collection)
        repo.create_many(items)
        repo.retain_latest(self.local_store_limit)

    async def _send_remote(self, payload: Dict[str, List[Dict[str, Any]]]) -> None:
        async with httpx.AsyncClient(timeout=self.remote_timeout) as client:
            response = await client.post(self.remote_url, json=payload)
            response.raise_for_status()

    def _queue(self, kind: str) -> List[Dict[str, Any]]:
        return getattr(self, QUEUE_ATTRS[kind])

    def _drain(self, kind: str) -> List[Dict[str, Any]]:
        items = self._queue(kind)
        setattr(self, QUEUE_ATTRS[kind], [])
        return items

    def _requeue(self, kind: str, items: List[Dict[str, Any]]) -> None:
        queue = self._queue(kind)
        if len(queue) < REQUEUE_THRESHOLD:
            queue[:0] = items[-REQUEUE_LIMIT:]

    async def flush(self) -> FlushResult:
        """
        Drain all queues into the local store and the remote sink.

        Never raises for storage or network failures: they are logged and
        counted, and the newest items are retried only against the sink that
        failed. Items the local store rejected go back into their queue; items
        the remote sink rejected wait in `remote_backlog`.
        """
        async with self._flush_lock:
            batch = {kind: self._drain(kind) for kind in KIND_COLLECTIONS}
            backlog, self.remote_backlog = self.remote_backlog, _empty_batch()

            result = FlushResult(
                events=len(batch["events"]),
                performances=len(batch["performances"]),
                actions=len(batch["actions"]),
            )
            if not any(batch.values()) and not any(backlog.values()):
                return result

            errors: List[str] = []
            remote_batch = {kind: list(backlog[kind]) for kind in KIND_COLLECTIONS}
            for kind, collection in KIND_COLLECTIONS.items():
                try:
                    self._store_locally(collection, batch[kind])
                except DataAccessError as e:
                    errors.append(str(e))
                    # Goes through both sinks again on the next flush
                    self._requeue(kind, batch[kind])
                else:
                    remote_batch[kind].extend(batch[kind])

            if self.remote_url and any(remote_batch.values()):
                try:
                    await self._send_remote(remote_batch)
                except httpx.HTTPError as e:
                    errors.append(str(e))
                    for kind, items in remote_batch.items():
                        if len(self._queue(kind)) < REQUEUE_THRESHOLD:
                            self.remote_backlog[kind] = items[-REQUEUE_LIMIT:]

            if errors:
                self.flush_failures += 1
                logger.error(
                    "Failed to flush monitoring data",
                    extra={"error": "; ".join(errors), **{kind: len(items) for kind, items in batch.items()}}
                )
                result.success = False
                result.error = "; ".join(errors)
                return result

            self.flush_count += 1
            self.last_flush_at = utc_now_iso()
            logger.info("Monitoring data flushed", extra=result.to_dict())
            return result

    async def _auto_flush(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval_seconds)
            await self.flush()

    def start(self) -> None:
        """Start the periodic flush task on the running event loop."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.get_running_loop().create_task(self._auto_flush())
            logger.info("Monitoring auto-flush started", extra={"interval_seconds": self.flush_interval_seconds})

    async def stop(self) -> FlushResult:
        """Cancel the periodic task and run a final flush."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
            logger.info("Monitoring auto-flush stopped")
        return await self.flush()

    @property
    def running(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "queued": {
                "events": len(self.event_queue),
                "performances": len(self.performance_queue),
                "actions": len(self.action_queue),
            },
            "totals": {
                "events": self.total_events,
                "performances": self.total_performances,
                "actions": self.total_actions,
                "droppedEvents": self.dropped_events,
            },
            "flushCount": self.flush_count,
            "flushFailures": self.flush_failures,
            "lastFlushAt": self.last_flush_at,
            "autoFlush": self.running,
            "flushIntervalSeconds": self.flush_interval_seconds,
            "remoteEnabled": bool(self.remote_url),
            "remoteBacklog": {kind: len(items) for kind, items in self.remote_backlog.items()},
        }

    def recent(self, collection: str, limit: int = 25) -> List[Dict[str, Any]]:
        """Newest locally stored entries of one monitoring collection."""
        if self._store_factory is None:
            return []
        return self._store_factory(collection).get_all(QueryOptions(page_size=limit)).items
