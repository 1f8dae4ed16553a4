"""
Event relay: forwards raw event payloads to session consumers.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .models import Notification, NotificationKind

logger = logging.getLogger(__name__)

# Type alias for notification consumers
Consumer = Callable[[Notification], Awaitable[None]]


class EventRelay:
    """
    Forwards event payloads to registered consumers, in delivery order.

    ``on_event()`` is called by the transport and never blocks: payloads
    are queued and a single dispatcher task hands them to consumers. When
    the queue is full the oldest payload is dropped.
    """

    def __init__(self, max_queue_size: int = 1000):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._consumers: List[Consumer] = []
        self._dispatch_task: Optional[asyncio.Task] = None
        self.dropped = 0

    def add_consumer(self, consumer: Consumer) -> Consumer:
        self._consumers.append(consumer)
        return consumer

    def remove_consumer(self, consumer: Consumer) -> None:
        if consumer in self._consumers:
            self._consumers.remove(consumer)

    @property
    def is_running(self) -> bool:
        return self._dispatch_task is not None and not self._dispatch_task.done()

    def start(self) -> None:
        """Start the dispatcher task."""
        if self.is_running:
            return
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())

    async def stop(self) -> None:
        """Deliver what is queued, then stop the dispatcher task."""
        if self._dispatch_task is None:
            return
        if self.is_running:
            await self._queue.join()
        self._dispatch_task.cancel()
        try:
            await self._dispatch_task
        except asyncio.CancelledError:
            pass
        self._dispatch_task = None

    def on_event(self, payload: Any) -> None:
        """Queue an event payload for delivery. The payload is passed on as is."""
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._queue.task_done()
                self.dropped += 1
                logger.warning("Event queue full, dropped oldest event")
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(payload)

    async def notify(self, notification: Notification) -> None:
        """Send a notification straight to every consumer."""
        for consumer in list(self._consumers):
            try:
                await consumer(notification)
            except Exception as e:
                logger.error(f"Error in consumer for {notification.kind.value}: {e}")

    async def _dispatch_loop(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.notify(Notification(kind=NotificationKind.EVENT, payload=payload))
            except Exception as e:
                logger.error(f"Failed to relay event: {e}")
            finally:
                self._queue.task_done()
