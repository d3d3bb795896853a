"""In-process pub/sub for quote pipeline events.

Emitters call ``await emit(SystemEvent(...))``; subscribers are async
callables registered with ``subscribe()``, either for every event or for a
list of event types. The audit logger is the only subscriber wired at
startup.

Before ``start_event_system()`` (scripts, tests) events are dispatched
inline. Once started, ``emit()`` only enqueues and a worker task delivers,
so a slow subscriber never holds up a quote request. ``stop_event_system()``
drains the queue before cancelling the worker.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Subscriber registry plus an optional delivery queue."""

    def __init__(self) -> None:
        self._all: list[EventHandler] = []
        self._by_type: dict[EventType, list[EventHandler]] = {}
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._queue is not None

    def handlers_for(self, event_type: EventType) -> list[EventHandler]:
        return [*self._all, *self._by_type.get(event_type, [])]

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self, handler: EventHandler, event_types: list[EventType] | None = None) -> None:
        """Register ``handler`` for every event, or only for ``event_types``."""
        targets = [self._all] if event_types is None else [self._by_type.setdefault(t, []) for t in event_types]
        for handlers in targets:
            if handler not in handlers:
                handlers.append(handler)
        logger.info(
            "Subscribed %s to %s",
            handler.__name__,
            "all events" if event_types is None else ", ".join(t.value for t in event_types),
        )

    def unsubscribe(self, handler: EventHandler) -> None:
        for handlers in [self._all, *self._by_type.values()]:
            if handler in handlers:
                handlers.remove(handler)

    # ── Delivery ─────────────────────────────────────────────────────

    async def emit(self, event: SystemEvent) -> None:
        if self._queue is None:
            await self.dispatch(event)
            return
        await self._queue.put(event)
        logger.debug("Queued %s (quote=%s)", event.event_type.value, event.quote_id)

    async def dispatch(self, event: SystemEvent) -> None:
        """Deliver one event to its subscribers concurrently; failures are logged per handler."""
        handlers = self.handlers_for(event.event_type)
        if not handlers:
            return
        outcomes = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
        for handler, outcome in zip(handlers, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "Subscriber %s failed on %s: %r",
                    handler.__name__,
                    event.event_type.value,
                    outcome,
                )

    async def _drain(self, queue: asyncio.Queue[SystemEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Event worker failed on %s", event.event_type.value)
            finally:
                queue.task_done()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._drain(self._queue))
        logger.info(
            "Event bus started (%d global, %d typed subscribers)",
            len(self._all),
            sum(len(h) for h in self._by_type.values()),
        )

    async def stop(self) -> None:
        queue, worker = self._queue, self._worker
        self._queue = None
        self._worker = None
        if queue is not None:
            await queue.join()
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        logger.info("Event bus stopped")


# Module-level singleton
event_bus = EventBus()


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    event_bus.subscribe(handler, event_types)


def unsubscribe(handler: EventHandler) -> None:
    event_bus.unsubscribe(handler)


async def emit(event: SystemEvent) -> None:
    """Publish an event; never raises because of a subscriber."""
    await event_bus.emit(event)


async def start_event_system() -> None:
    """Switch to queued delivery. Called from the FastAPI lifespan."""
    await event_bus.start()


async def stop_event_system() -> None:
    """Drain queued events and stop the worker."""
    await event_bus.stop()
