"""Background queue running notification and audit work for lifecycle events."""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from ..dto.booking_event import BookingEvent
from ...infrastructure.logging import (
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id
)

SideEffectHandler = Callable[[BookingEvent], Awaitable[object]]


class SideEffectQueue:
    """In-process task queue between the lifecycle controller and its side effects.

    ``publish`` never blocks and never raises. A single worker consumes events
    and runs every registered handler under ``handler_timeout_seconds``;
    handler errors and timeouts are logged and the event is considered done.
    Handlers log under the correlation ID that was active at publish time.
    """

    def __init__(
        self,
        handlers: Sequence[Tuple[str, SideEffectHandler]],
        handler_timeout_seconds: float = 30.0,
        max_size: int = 1000
    ):
        self._handlers = list(handlers)
        self._handler_timeout = handler_timeout_seconds
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._worker: Optional[asyncio.Task] = None
        self._dropped = 0
        self._logger = get_logger(__name__)

    @property
    def is_running(self) -> bool:
        """Check if the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """Get number of queued events not yet taken by the worker."""
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        """Get number of events dropped because the queue was full."""
        return self._dropped

    def publish(self, event: BookingEvent) -> None:
        """Enqueue an event for background processing."""
        try:
            self._queue.put_nowait((event, get_correlation_id()))
        except asyncio.QueueFull:
            self._dropped += 1
            self._logger.error(
                "Side-effect queue full, event dropped",
                extra={
                    "booking_id": str(event.booking_id),
                    "event_kind": event.kind.value,
                    "dropped_total": self._dropped
                }
            )

    async def start(self) -> None:
        """Start the worker task."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="booking-side-effects")
        self._logger.info("Side-effect worker started", extra={"handlers": [name for name, _ in self._handlers]})

    async def join(self) -> None:
        """Wait until every queued event has been processed."""
        await self._queue.join()

    async def stop(self, drain_timeout_seconds: float = 5.0) -> None:
        """Drain outstanding events, then stop the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout_seconds)
        except asyncio.TimeoutError:
            self._logger.warning(
                "Side-effect queue not drained before shutdown",
                extra={"pending_events": self._queue.qsize()}
            )
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._logger.info("Side-effect worker stopped")

    async def _run(self) -> None:
        while True:
            event, correlation_id = await self._queue.get()
            if correlation_id:
                set_correlation_id(correlation_id)
            try:
                await self.process(event)
            finally:
                clear_correlation_id()
                self._queue.task_done()

    async def process(self, event: BookingEvent) -> None:
        """Run every handler for one event."""
        await asyncio.gather(*(self._run_handler(name, handler, event) for name, handler in self._handlers))

    async def _run_handler(self, name: str, handler: SideEffectHandler, event: BookingEvent) -> None:
        try:
            await asyncio.wait_for(handler(event), timeout=self._handler_timeout)
        except asyncio.TimeoutError:
            self._logger.warning(
                "Side-effect handler abandoned after timeout",
                extra={
                    "handler": name,
                    "booking_id": str(event.booking_id),
                    "timeout_seconds": self._handler_timeout
                }
            )
        except Exception:
            self._logger.exception(
                "Side-effect handler failed",
                extra={"handler": name, "booking_id": str(event.booking_id)}
            )
