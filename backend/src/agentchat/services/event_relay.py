"""
Per-conversation fan-out of agent events to SSE subscribers.

Delivery is at-most-once: only subscriptions registered when ``publish`` runs
receive an event, nothing is buffered for late subscribers.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator

from ..core.logger import get_logger
from ..schemas.events import AgentEvent

logger = get_logger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_sse(event: AgentEvent) -> str:
    return f"data: {event.to_json()}\n\n"


class Subscription:
    """One listener on a conversation. Owns a bounded queue of events."""

    _CLOSED = object()

    def __init__(
        self,
        relay: "EventRelay",
        conversation_id: str,
        queue_size: int,
        keepalive_seconds: float,
    ):
        self.relay = relay
        self.conversation_id = conversation_id
        self.keepalive_seconds = keepalive_seconds
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: AgentEvent) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                f"[EventRelay] Subscriber queue full for {self.conversation_id}, dropping {event.type}"
            )
            return False
        return True

    def close(self) -> None:
        """Deregister and wake the stream. Safe to call any number of times."""
        if self._closed:
            return
        self._closed = True
        self.relay._remove(self)
        try:
            self._queue.put_nowait(self._CLOSED)
        except asyncio.QueueFull:
            # stream() checks the flag after each item
            pass

    async def events(self) -> AsyncIterator[AgentEvent | None]:
        """Yield events, or None whenever the keep-alive interval passes quietly."""
        try:
            while not self._closed:
                try:
                    item = await asyncio.wait_for(
                        self._queue.get(), timeout=self.keepalive_seconds
                    )
                except asyncio.TimeoutError:
                    yield None
                    continue
                if item is self._CLOSED:
                    break
                yield item
        finally:
            self.close()

    async def stream(self) -> AsyncIterator[str]:
        """SSE frames for a StreamingResponse body."""
        async for event in self.events():
            if event is None:
                yield KEEPALIVE_FRAME
            else:
                yield format_sse(event)


class EventRelay:
    """Publish/subscribe hub, built once per process in the app lifespan."""

    def __init__(self, keepalive_seconds: float = 15, queue_size: int = 100):
        self.keepalive_seconds = keepalive_seconds
        self.queue_size = queue_size
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    @classmethod
    def from_settings(cls, settings) -> "EventRelay":
        return cls(
            keepalive_seconds=settings.event_relay.keepalive_seconds,
            queue_size=settings.event_relay.queue_size,
        )

    def subscribe(self, conversation_id: str) -> Subscription:
        subscription = Subscription(
            self, conversation_id, self.queue_size, self.keepalive_seconds
        )
        self._subscribers[conversation_id].add(subscription)
        logger.debug(
            f"[EventRelay] Subscribed to {conversation_id} ({self.subscriber_count(conversation_id)} active)"
        )
        return subscription

    def publish(self, conversation_id: str | None, event: AgentEvent) -> int:
        """Deliver to current subscribers. Returns how many received it."""
        if not conversation_id:
            return 0
        subscribers = self._subscribers.get(conversation_id)
        if not subscribers:
            return 0
        delivered = 0
        for subscription in list(subscribers):
            if subscription.deliver(event):
                delivered += 1
        return delivered

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscribers.get(conversation_id, ()))

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.conversation_id)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.conversation_id]
        logger.debug(f"[EventRelay] Unsubscribed from {subscription.conversation_id}")

    def shutdown(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                subscription.close()
        self._subscribers.clear()
        logger.info("[EventRelay] All subscriptions closed")
