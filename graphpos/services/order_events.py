"""
Live order channel.

In-process publish/subscribe broker, one asyncio.Queue per subscriber,
grouped by tenant. Order writes publish {type, order_id, updated_at};
the SSE endpoint streams them so boards know when to refetch.

Events are hints, not state: a board that misses one still converges on
its next refetch.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Set, AsyncIterator

logger = logging.getLogger(__name__)

ORDER_CREATED = "order_created"
ORDER_STATUS_CHANGED = "order_status_changed"
ORDER_PAYMENT_ADDED = "order_payment_added"


class OrderEventBroker:
    """Per-tenant fan-out of order change events."""

    def __init__(self, max_queue_size: int = 100):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}
        self._lock = asyncio.Lock()
        self._max_queue_size = max_queue_size

    async def subscribe(self, company_id) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._subscribers.setdefault(str(company_id), set()).add(queue)
        logger.debug("Order channel subscriber added for tenant %s", company_id)
        return queue

    async def unsubscribe(self, company_id, queue: asyncio.Queue) -> None:
        key = str(company_id)
        async with self._lock:
            queues = self._subscribers.get(key)
            if queues is None:
                return
            queues.discard(queue)
            if not queues:
                del self._subscribers[key]

    def subscriber_count(self, company_id) -> int:
        return len(self._subscribers.get(str(company_id), ()))

    async def publish(
        self,
        company_id,
        event_type: str,
        order_id: uuid.UUID,
        updated_at: Optional[datetime] = None,
    ) -> int:
        """
        Deliver an event to every subscriber of the tenant.

        Slow subscribers with a full queue lose the oldest event.

        Returns:
            Number of subscribers reached
        """
        event = {
            "type": event_type,
            "order_id": str(order_id),
            "updated_at": (updated_at or datetime.now(timezone.utc)).isoformat(),
        }
        async with self._lock:
            queues = list(self._subscribers.get(str(company_id), ()))

        for queue in queues:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)

        logger.debug("Order event %s for %s sent to %d subscribers", event_type, order_id, len(queues))
        return len(queues)


def format_sse(event: dict) -> str:
    """Serialize an event as a Server-Sent Events frame."""
    return f"event: {event['type']}\ndata: {json.dumps(event)}\n\n"


async def stream_events(
    broker: OrderEventBroker,
    company_id,
    heartbeat_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """Yield SSE frames for a tenant until the client goes away."""
    queue = await broker.subscribe(company_id)
    try:
        yield ": connected\n\n"
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        await broker.unsubscribe(company_id, queue)


_broker: Optional[OrderEventBroker] = None


def get_order_broker() -> OrderEventBroker:
    """Process-wide broker instance."""
    global _broker
    if _broker is None:
        _broker = OrderEventBroker()
    return _broker
