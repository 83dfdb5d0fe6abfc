"""Tests for clawloop.session.bus (MessageBus, Subscription, EventQueue)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import pytest

from clawloop.session.bus import MessageBus


@dataclass(frozen=True)
class Ping:
    value: int


@dataclass(frozen=True)
class Pong:
    value: int


@dataclass(frozen=True)
class LoudPing(Ping):
    pass


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class TestPublish:
    async def test_delivers_to_subscriber(self) -> None:
        bus = MessageBus()
        received: list[Ping] = []
        bus.subscribe(Ping, received.append)

        await bus.publish(Ping(1))

        assert received == [Ping(1)]

    async def test_delivers_to_all_subscribers(self) -> None:
        bus = MessageBus()
        a: list[Ping] = []
        b: list[Ping] = []
        bus.subscribe(Ping, a.append)
        bus.subscribe(Ping, b.append)

        await bus.publish(Ping(7))

        assert a == [Ping(7)]
        assert b == [Ping(7)]

    async def test_async_handler_awaited(self) -> None:
        bus = MessageBus()
        received: list[int] = []

        async def handler(event: Ping) -> None:
            await asyncio.sleep(0)
            received.append(event.value)

        bus.subscribe(Ping, handler)
        await bus.publish(Ping(3))

        assert received == [3]

    async def test_handlers_run_concurrently(self) -> None:
        bus = MessageBus()
        first_started = asyncio.Event()
        second_started = asyncio.Event()

        async def first(event: Ping) -> None:
            first_started.set()
            await asyncio.wait_for(second_started.wait(), timeout=1)

        async def second(event: Ping) -> None:
            second_started.set()
            await asyncio.wait_for(first_started.wait(), timeout=1)

        bus.subscribe(Ping, first)
        bus.subscribe(Ping, second)

        await bus.publish(Ping(1))

        assert first_started.is_set() and second_started.is_set()

    async def test_no_subscribers_is_noop(self) -> None:
        await MessageBus().publish(Ping(1))

    async def test_exact_type_only(self) -> None:
        bus = MessageBus()
        pings: list[Ping] = []
        pongs: list[Pong] = []
        bus.subscribe(Ping, pings.append)
        bus.subscribe(Pong, pongs.append)

        await bus.publish(LoudPing(1))
        await bus.publish(Pong(2))

        assert pings == []
        assert pongs == [Pong(2)]

    async def test_publish_none_rejected(self) -> None:
        with pytest.raises(TypeError):
            await MessageBus().publish(None)

    def test_non_callable_handler_rejected(self) -> None:
        with pytest.raises(TypeError):
            MessageBus().subscribe(Ping, "not callable")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Handler isolation
# ---------------------------------------------------------------------------


class TestHandlerErrors:
    async def test_failing_handler_does_not_block_others(self) -> None:
        bus = MessageBus()
        received: list[Ping] = []

        def broken(event: Ping) -> None:
            raise RuntimeError("handler exploded")

        bus.subscribe(Ping, broken)
        bus.subscribe(Ping, received.append)

        await bus.publish(Ping(1))

        assert received == [Ping(1)]

    async def test_failing_async_handler_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = MessageBus()

        async def broken(event: Ping) -> None:
            raise ValueError("nope")

        bus.subscribe(Ping, broken)

        with caplog.at_level(logging.ERROR, logger="clawloop.session.bus"):
            await bus.publish(Ping(1))

        assert any("Ping" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class TestSubscription:
    async def test_close_stops_delivery(self) -> None:
        bus = MessageBus()
        received: list[Ping] = []
        sub = bus.subscribe(Ping, received.append)

        await bus.publish(Ping(1))
        sub.close()
        await bus.publish(Ping(2))

        assert received == [Ping(1)]
        assert sub.active is False
        assert bus.subscriber_count(Ping) == 0

    def test_close_twice_is_harmless(self) -> None:
        bus = MessageBus()
        sub = bus.subscribe(Ping, lambda e: None)

        sub.close()
        sub.close()

        assert bus.subscriber_count(Ping) == 0

    def test_close_removes_only_its_handler(self) -> None:
        bus = MessageBus()
        first = bus.subscribe(Ping, lambda e: None)
        bus.subscribe(Ping, lambda e: None)

        first.close()

        assert bus.subscriber_count(Ping) == 1

    def test_context_manager(self) -> None:
        bus = MessageBus()
        with bus.subscribe(Pong, lambda e: None) as sub:
            assert sub.event_type is Pong
            assert bus.subscriber_count(Pong) == 1
        assert bus.subscriber_count(Pong) == 0

    async def test_unsubscribe_during_publish(self) -> None:
        bus = MessageBus()
        received: list[str] = []
        subs = []

        def first(event: Ping) -> None:
            received.append("first")
            subs[1].close()

        def second(event: Ping) -> None:
            received.append("second")

        subs.append(bus.subscribe(Ping, first))
        subs.append(bus.subscribe(Ping, second))

        await bus.publish(Ping(1))
        await bus.publish(Ping(2))

        # The first publish ran against its snapshot; the second sees the removal
        assert received == ["first", "second", "first"]

    async def test_subscribe_during_publish_not_seen_by_it(self) -> None:
        bus = MessageBus()
        late: list[Ping] = []

        def first(event: Ping) -> None:
            bus.subscribe(Ping, late.append)

        bus.subscribe(Ping, first)
        await bus.publish(Ping(1))

        assert late == []
        await bus.publish(Ping(2))
        assert late == [Ping(2)]


# ---------------------------------------------------------------------------
# EventQueue
# ---------------------------------------------------------------------------


class TestEventQueue:
    async def test_buffers_selected_types(self) -> None:
        bus = MessageBus()
        queue = bus.listen(Ping, Pong)

        await bus.publish(Ping(1))
        await bus.publish(Pong(2))

        assert await queue.get() == Ping(1)
        assert await queue.get() == Pong(2)
        assert queue.empty()

    async def test_iteration_ends_on_close(self) -> None:
        bus = MessageBus()
        queue = bus.listen(Ping)
        await bus.publish(Ping(1))
        await bus.publish(Ping(2))
        queue.close()

        events = [e async for e in queue]

        assert events == [Ping(1), Ping(2)]
        assert queue.closed

    async def test_close_unsubscribes(self) -> None:
        bus = MessageBus()
        with bus.listen(Ping) as queue:
            assert bus.subscriber_count(Ping) == 1
        assert bus.subscriber_count(Ping) == 0

        await bus.publish(Ping(1))
        assert queue.get_nowait() is None
        assert queue.empty()

    async def test_consumer_task(self) -> None:
        bus = MessageBus()
        queue = bus.listen(Ping)
        seen: list[int] = []

        async def consume() -> None:
            async for event in queue:
                seen.append(event.value)

        consumer = asyncio.create_task(consume())
        for i in range(3):
            await bus.publish(Ping(i))
        queue.close()
        await asyncio.wait_for(consumer, timeout=1)

        assert seen == [0, 1, 2]
