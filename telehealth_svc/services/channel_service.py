"""
In-memory message channels for the dashboard's polling endpoint.

Clients subscribe to a channel id, send messages to it and poll for messages
they have not seen. State lives in process memory only; a restart drops every
channel. Channels without subscribers are dropped once they sit idle for
`idle_seconds`, or least recently used first when the hub holds more than
`max_channels`.
"""
import logging
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from telehealth_svc.core.datetime_utils import utc_now_iso

logger = logging.getLogger(__name__)

MAX_MESSAGES_PER_CHANNEL = 100
MAX_CHANNELS = 1000
CHANNEL_IDLE_SECONDS = 30 * 60


def _timestamp_id(prefix: str, counter: int) -> str:
    # Millisecond timestamp plus a counter so ids stay unique within one ms
    return f"{prefix}_{int(time.time() * 1000)}_{counter}"


@dataclass
class Channel:
    channel_id: str
    messages: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=MAX_MESSAGES_PER_CHANNEL))
    subscriptions: Set[str] = field(default_factory=set)
    created_at: str = field(default_factory=utc_now_iso)
    last_active: float = 0.0


class ChannelHub:
    """Thread-safe registry of channels, shared by the application."""

    def __init__(
        self,
        max_channels: int = MAX_CHANNELS,
        idle_seconds: float = CHANNEL_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        # Least recently active first
        self._channels: "OrderedDict[str, Channel]" = OrderedDict()
        self._lock = threading.Lock()
        self._counter = 0
        self.max_channels = max_channels
        self.idle_seconds = idle_seconds
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return _timestamp_id(prefix, self._counter)

    def _touch(self, channel: Channel) -> None:
        channel.last_active = self._clock()
        self._channels.move_to_end(channel.channel_id)

    def _evict(self) -> None:
        """Drop unsubscribed channels that are idle, then the oldest ones while over capacity."""
        now = self._clock()
        evicted = 0
        for channel_id, channel in list(self._channels.items()):
            if channel.subscriptions:
                continue
            if now - channel.last_active >= self.idle_seconds or len(self._channels) >= self.max_channels:
                del self._channels[channel_id]
                evicted += 1
        if evicted:
            logger.debug("Channels evicted", extra={"evicted": evicted, "remaining": len(self._channels)})

    def _channel(self, channel_id: str) -> Channel:
        channel = self._channels.get(channel_id)
        if channel is None:
            self._evict()
            channel = Channel(channel_id=channel_id)
            self._channels[channel_id] = channel
            logger.debug("Channel created", extra={"channel_id": channel_id})
        self._touch(channel)
        return channel

    def connect(self, channel_id: str) -> Channel:
        with self._lock:
            return self._channel(channel_id)

    def send(self, channel_id: str, data: Any) -> Dict[str, Any]:
        with self._lock:
            message = {"id": self._next_id("msg"), "data": data, "timestamp": utc_now_iso()}
            self._channel(channel_id).messages.append(message)
        logger.info("Channel message sent", extra={"channel_id": channel_id, "message_id": message["id"]})
        return message

    def subscribe(self, channel_id: str) -> str:
        with self._lock:
            subscription_id = self._next_id("sub")
            self._channel(channel_id).subscriptions.add(subscription_id)
        return subscription_id

    def unsubscribe(self, channel_id: str, subscription_id: Optional[str] = None) -> int:
        """Remove one subscription, or all of them when no id is given. Returns the number removed."""
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return 0
            if subscription_id is None:
                removed = len(channel.subscriptions)
                channel.subscriptions.clear()
            elif subscription_id in channel.subscriptions:
                channel.subscriptions.discard(subscription_id)
                removed = 1
            else:
                removed = 0
            if not channel.subscriptions and not channel.messages:
                del self._channels[channel_id]
        return removed

    def poll(self, channel_id: Optional[str], after: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Messages of a channel, oldest first.

        Args:
            channel_id: Channel to read; unknown or missing ids yield no messages.
            after: Only return messages sent after the message with this id.
        """
        if not channel_id:
            return []
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                return []
            self._touch(channel)
            messages = list(channel.messages)
        if after:
            ids = [m["id"] for m in messages]
            if after in ids:
                messages = messages[ids.index(after) + 1:]
        return messages

    def status(self, channel_id: Optional[str]) -> Dict[str, Any]:
        with self._lock:
            channel = self._channels.get(channel_id) if channel_id else None
            if channel is None:
                return {"exists": False, "subscribers": 0, "messages": 0}
            return {
                "exists": True,
                "subscribers": len(channel.subscriptions),
                "messages": len(channel.messages),
                "createdAt": channel.created_at,
            }
