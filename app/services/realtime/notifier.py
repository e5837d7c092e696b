"""In-process fan-out of newly persisted records to dashboard sessions."""
import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

CALL_UPSERTED = "call.upserted"
MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
CONVERSATION_UPDATED = "conversation.updated"


@dataclass
class RealtimeEvent:
    """One change pushed to subscribers."""

    seq: int
    type: str
    key: str  # call sid or canonical phone
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Format as a Server-Sent Events frame."""
        data = json.dumps({"seq": self.seq, "key": self.key, "payload": self.payload}, default=str)
        return f"id: {self.seq}\nevent: {self.type}\ndata: {data}\n\n"


class Subscription:
    """A subscriber's FIFO of events. Iterate with ``async for``."""

    def __init__(self, notifier: "RealtimeNotifier", maxsize: int):
        self._notifier = notifier
        self.queue: "asyncio.Queue[Optional[RealtimeEvent]]" = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, event: RealtimeEvent) -> bool:
        """Enqueue without blocking. False when the buffer is full."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # consumer drains the backlog, then sees `closed`
            pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> RealtimeEvent:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def unsubscribe(self) -> None:
        self._notifier.unsubscribe(self)


class RealtimeNotifier:
    """
    Publishes change events to every connected dashboard session.

    Publishing is synchronous and never blocks the webhook that triggered it.
    Each subscriber gets events in publish order; one that falls more than
    ``queue_size`` events behind is disconnected and expected to reconnect
    and refetch.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self._seq = itertools.count(1)
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.queue_size)
        if self._closed:
            subscription.close()
            return subscription
        self._subscribers.add(subscription)
        logger.debug(f"[REALTIME] Subscriber added ({len(self._subscribers)} connected)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)
        subscription.close()

    def publish(self, event_type: str, key: str, payload: Dict[str, Any]) -> RealtimeEvent:
        event = RealtimeEvent(seq=next(self._seq), type=event_type, key=key, payload=payload)
        for subscription in list(self._subscribers):
            if not subscription.offer(event):
                logger.warning(
                    f"[REALTIME] Subscriber fell behind ({self.queue_size} events); disconnecting"
                )
                self.unsubscribe(subscription)
        return event

    async def close(self) -> None:
        self._closed = True
        for subscription in list(self._subscribers):
            self.unsubscribe(subscription)
