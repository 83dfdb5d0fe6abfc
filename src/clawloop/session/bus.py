"""Message bus — decouples agent logic from its observers.

The agent loop and the sub-agent factory publish typed lifecycle events;
a UI, a log sink or a metrics collector subscribes to the event types it
cares about. The loop never knows who is listening.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import AsyncIterator, Awaitable
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Handler = Callable[[Any], Awaitable[None] | None]


class Subscription:
    """Handle returned by ``MessageBus.subscribe``.

    Closing it removes the handler; closing twice is harmless.
    """

    def __init__(self, bus: MessageBus, event_type: type, handler: Handler) -> None:
        self._bus = bus
        self._event_type = event_type
        self._handler = handler
        self._active = True

    @property
    def event_type(self) -> type:
        return self._event_type

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self._event_type, self._handler)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class MessageBus:
    """In-process typed publish/subscribe.

    Handlers are registered per exact event type. ``publish`` snapshots the
    handlers for the event's type, runs them concurrently and waits for all
    of them. A failing handler is logged and never affects the other
    handlers or the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, tuple[Handler, ...]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[E], handler: Callable[[E], Any]) -> Subscription:
        """Subscribe ``handler`` to events of exactly ``event_type``.

        The handler may be a coroutine function or a plain function.
        """
        if not callable(handler):
            raise TypeError("handler must be callable")
        with self._lock:
            # Copy-on-write: in-flight publishes keep their own snapshot
            self._handlers[event_type] = self._handlers.get(event_type, ()) + (handler,)
        return Subscription(self, event_type, handler)

    def _remove(self, event_type: type, handler: Handler) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event_type, ()))
            if handler in handlers:
                handlers.remove(handler)
            if handlers:
                self._handlers[event_type] = tuple(handlers)
            else:
                self._handlers.pop(event_type, None)

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, ()))

    async def publish(self, event: object) -> None:
        """Deliver ``event`` to every handler subscribed to its type."""
        if event is None:
            raise TypeError("cannot publish None")

        with self._lock:
            snapshot = self._handlers.get(type(event), ())

        if not snapshot:
            return

        results = await asyncio.gather(
            *(self._invoke(h, event) for h in snapshot), return_exceptions=True
        )
        for handler, result in zip(snapshot, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Handler %r failed for %s: %s",
                    handler,
                    type(event).__name__,
                    result,
                    exc_info=result,
                )

    @staticmethod
    async def _invoke(handler: Handler, event: object) -> None:
        result = handler(event)
        if inspect.isawaitable(result):
            await result

    def listen(self, *event_types: type) -> EventQueue:
        """Subscribe a queue to one or more event types.

        Handy for a UI consumer task that renders events in order.
        """
        return EventQueue(self, event_types)


class EventQueue:
    """Events of the chosen types, buffered in an ``asyncio.Queue``.

    Iterate with ``async for`` until ``close()`` is called; ``close`` also
    unsubscribes and wakes the consumer with a ``None`` sentinel.
    """

    def __init__(self, bus: MessageBus, event_types: tuple[type, ...]) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._subscriptions = [bus.subscribe(t, self._queue.put_nowait) for t in event_types]
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self) -> Any:
        """Next event, or None once the queue has been closed."""
        return await self._queue.get()

    def get_nowait(self) -> Any:
        return self._queue.get_nowait()

    def empty(self) -> bool:
        return self._queue.empty()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for sub in self._subscriptions:
            sub.close()
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def __enter__(self) -> EventQueue:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
