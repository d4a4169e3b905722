"""Event bus for pipeline and launcher notifications.

The EventBus provides a publish-subscribe mechanism for delivering events
from the import pipeline and the launcher to their consumers. Delivery
happens in a background task so publishers never wait on subscribers, and
a failing subscriber does not affect the others.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventBus:
    """Queue-backed publish/subscribe bus.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(NoticeEvent, lambda e: print(e.message))
        >>> bus.start()
        >>> await bus.publish(NoticeEvent('warning', 'cover download failed'))
        >>> await bus.stop()
    """

    def __init__(self):
        """Initialize the event bus."""
        self._subscribers: Dict[type, List[Callable]] = defaultdict(list)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._processing: bool = False
        self._task: Optional[asyncio.Task] = None
        self._event_count: int = 0
        self._error_count: int = 0

    def subscribe(self, event_type: type, callback: Callable) -> None:
        """Subscribe to events of a specific type.

        Args:
            event_type: The event class to subscribe to
            callback: Function to call when event is published.
                     Can be sync or async.
        """
        self._subscribers[event_type].append(callback)
        logger.debug(f"Subscribed to {event_type.__name__} (total subscribers: {len(self._subscribers[event_type])})")

    def unsubscribe(self, event_type: type, callback: Callable) -> None:
        """Unsubscribe from events of a specific type."""
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(callback)
                logger.debug(f"Unsubscribed from {event_type.__name__}")
            except ValueError:
                logger.warning(f"Callback not found for {event_type.__name__}")

    async def publish(self, event: Any) -> None:
        """Queue an event for delivery."""
        await self._queue.put(event)

    async def _dispatch(self, event: Any) -> None:
        event_type = type(event)
        callbacks = list(self._subscribers.get(event_type, []))

        if not callbacks:
            logger.debug(f"No subscribers for {event_type.__name__}")
            return

        for callback in callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                self._error_count += 1
                logger.error(
                    f"Error in event handler for {event_type.__name__}: {e}",
                    exc_info=True
                )

    async def process_events(self) -> None:
        """Deliver queued events until stopped or cancelled."""
        self._processing = True
        logger.debug("Event bus processing started")

        try:
            while self._processing:
                event = await self._queue.get()
                self._event_count += 1
                try:
                    await self._dispatch(event)
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Event bus processing cancelled")
            raise
        finally:
            self._processing = False

    def start(self) -> asyncio.Task:
        """Start delivering events in a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.process_events())
        return self._task

    async def stop(self, timeout: float = 5.0) -> None:
        """Deliver pending events, then stop the background task.

        Args:
            timeout: Seconds to wait for the queue to drain
        """
        if self._task is not None and not self._task.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Event queue timeout - {self._queue.qsize()} events dropped")

            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._processing = False

        stats = self.get_stats()
        logger.debug(
            f"Event bus stopped. Processed {stats['events_processed']} events "
            f"with {stats['errors']} errors, {stats['queue_size']} left queued"
        )

    def get_stats(self) -> Dict[str, int]:
        """Get event bus statistics.

        Returns:
            Dictionary with 'events_processed', 'errors', 'queue_size', 'subscriber_count'
        """
        return {
            'events_processed': self._event_count,
            'errors': self._error_count,
            'queue_size': self._queue.qsize(),
            'subscriber_count': sum(len(callbacks) for callbacks in self._subscribers.values())
        }
