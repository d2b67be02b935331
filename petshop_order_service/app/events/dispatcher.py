"""
Fire-and-forget delivery of domain events.

The order service hands every committed transition's event to the dispatcher
and returns immediately. Delivery runs as a background task; a failure is
logged as a NotificationDeliveryFailed warning and never reaches the caller.
"""

import asyncio
from typing import List, Optional, Set

from ..core.exceptions import NotificationDeliveryFailed
from ..utils.logging import setup_order_logging as setup_logging
from .base import BaseEvent, EventPublisher

logger = setup_logging("order_service_dispatcher")


class NotificationDispatcher:
    """Schedules event delivery outside the transactional path"""

    def __init__(self, publisher: Optional[EventPublisher], max_failures_kept: int = 100):
        self.publisher = publisher
        self.max_failures_kept = max_failures_kept
        self.failures: List[NotificationDeliveryFailed] = []
        self._pending: Set["asyncio.Task[None]"] = set()

    def emit(self, event: BaseEvent, topic: Optional[str] = None) -> None:
        """Queue an event for delivery without awaiting it"""
        if self.publisher is None:
            logger.warning(
                "No event publisher configured, dropping event",
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            return

        task = asyncio.get_running_loop().create_task(self._deliver(event, topic))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: BaseEvent, topic: Optional[str]) -> None:
        try:
            await self.publisher.publish(event, topic=topic)  # type: ignore[union-attr]
        except Exception as e:
            failure = NotificationDeliveryFailed(event.event_type, event.event_id, str(e))
            self._record(failure)
            logger.warning(
                failure.message,
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "error": str(e),
                    "event_data": event.data,
                },
            )

    def _record(self, failure: NotificationDeliveryFailed) -> None:
        self.failures.append(failure)
        if len(self.failures) > self.max_failures_kept:
            del self.failures[0]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight delivery; used on shutdown and in tests"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
