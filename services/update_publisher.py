"""
Update Publisher

Fans the latest funding rate snapshot out to subscribers after every
successful collection cycle.

Two kinds of subscriber:
    - Callbacks (sync or async), registered with subscribe(). Used by
      in-process consumers such as the alert monitor. They run inline: an
      async callback is awaited inside the publishing exchange's cycle, so
      a slow callback stretches that cycle. Anything slow belongs behind a
      queue subscriber.
    - Queues, from subscribe_queue(). Used by live transports (WebSocket
      handlers) that consume at their own pace. A full queue drops the event
      so publishing never blocks.

A failing subscriber is logged and never prevents delivery to the others.
Delivery is at-most-once.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Set

from core.logging import get_logger
from core.schemas import FundingRatesUpdate, FundingRateWithExchange


Subscriber = Callable[[Dict[str, Any]], Any]


class UpdatePublisher:
    """
    Async pub/sub for funding rate updates.

    - Callbacks are called, and awaited when async, one after another before
      publish() returns; keep them short.
    - Each queue subscriber gets its own asyncio.Queue and will not block publishers.
    - Unsubscribing is important to avoid queue leaks when clients disconnect.
    """

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._callbacks: List[Subscriber] = []
        self._queues: Set[asyncio.Queue] = set()
        self._max_queue_size = max_queue_size
        self._logger = get_logger(__name__)

    @classmethod
    def from_settings(cls, config=None) -> "UpdatePublisher":
        from core.config import settings

        config = config or settings
        return cls(max_queue_size=config.publisher_queue_size)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)

    # ============================================
    # Subscription
    # ============================================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback. Returns a function that unregisters it.

        The callback receives the event as a JSON-ready dict.
        """
        self._callbacks.append(callback)
        self._logger.debug(f"Callback subscriber added. total={len(self._callbacks)}")

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
                self._logger.debug(f"Callback subscriber removed. total={len(self._callbacks)}")

        return unsubscribe

    def subscribe_queue(self) -> asyncio.Queue:
        """Register a queue subscriber and return its queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._queues.add(queue)
        self._logger.debug(f"Queue subscriber added. total={len(self._queues)}")
        return queue

    def unsubscribe_queue(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)
            # Drain so pending events can be collected
            while not queue.empty():
                queue.get_nowait()
        self._logger.debug(f"Queue subscriber removed. total={len(self._queues)}")

    # ============================================
    # Publishing
    # ============================================

    async def publish(self, snapshot: List[FundingRateWithExchange]) -> int:
        """
        Deliver a snapshot to every subscriber.

        Args:
            snapshot: Latest funding rates across all exchanges

        Returns:
            Number of subscribers the event was delivered to
        """
        event = FundingRatesUpdate(data=snapshot).model_dump(mode="json")
        delivered = 0

        for callback in list(self._callbacks):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                name = getattr(callback, "__qualname__", repr(callback))
                self._logger.error(f"Subscriber {name} failed: {e}", exc_info=True)

        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                # Drop event to avoid backpressure blocking
                self._logger.warning("Dropping funding-rates-update for a subscriber with a full queue")

        self._logger.debug(f"Published {len(snapshot)} rate(s) to {delivered} subscriber(s)")
        return delivered
