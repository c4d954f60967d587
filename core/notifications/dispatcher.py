"""
Notification dispatchers.

The order engines only hand events to a dispatcher; delivery happens
elsewhere:

- InProcessNotificationDispatcher: asyncio.Queue drained by a background task
- TemporalNotificationDispatcher: one NotificationWorkflow per event, run by
  the notification worker (workers/worker.py)
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from core.errors import NotificationError
from core.notifications.events import NotificationEvent
from core.observability.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[NotificationEvent], Awaitable[Any]]


class NotificationDispatcher(ABC):
    """Accepts events for asynchronous delivery."""

    @abstractmethod
    async def dispatch(self, event: NotificationEvent) -> None:
        """Enqueue an event. Raises NotificationError if it cannot be queued."""
        pass

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class InProcessNotificationDispatcher(NotificationDispatcher):
    """Queue plus one consumer task in the current event loop."""

    def __init__(self, handler: EventHandler, maxsize: int = 0):
        self._handler = handler
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.delivered = 0
        self.failed = 0

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._closed = False
            self._task = asyncio.create_task(self._run(), name="notification-dispatcher")
            logger.info("In-process notification dispatcher started")

    async def dispatch(self, event: NotificationEvent) -> None:
        if self._closed:
            raise NotificationError("Notification dispatcher is stopped")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            raise NotificationError("Notification queue is full")
        logger.debug(f"Queued {event.kind.value} for order {event.order_id}")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting events, flush the queue and cancel the consumer."""
        self._closed = True
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {self._queue.qsize()} undelivered notifications on shutdown")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("In-process notification dispatcher stopped")

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handler(event)
                self.delivered += 1
            except Exception as e:
                self.failed += 1
                logger.error(f"Notification {event.event_id} ({event.kind.value}) failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()


class TemporalNotificationDispatcher(NotificationDispatcher):
    """Starts a NotificationWorkflow per event on the notify task queue."""

    def __init__(self, client: Any, task_queue: str):
        self._client = client
        self.task_queue = task_queue

    async def dispatch(self, event: NotificationEvent) -> None:
        from workflows.notification_workflow import NotificationWorkflow

        try:
            await self._client.start_workflow(
                NotificationWorkflow.run,
                event.to_dict(),
                id=f"notify-{event.event_id}",
                task_queue=self.task_queue,
            )
        except Exception as e:
            raise NotificationError(f"Failed to start notification workflow: {e}") from e
        logger.info(f"Started notification workflow notify-{event.event_id} for order {event.order_id}")
