"""Tests for keyed locks and the lifecycle event bus."""

from __future__ import annotations

import asyncio

from bookswap.core.events import LifecycleEvent, LifecycleEventBus
from bookswap.core.locks import KeyedLock
from bookswap.core.types import NotificationType


def _event() -> LifecycleEvent:
    return LifecycleEvent(
        type=NotificationType.REQUEST_SENT,
        request_id="r1",
        recipient_id="u1",
        actor_id="u2",
    )


class TestKeyedLock:
    async def test_same_key_is_serialized(self) -> None:
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_keys_run_in_parallel(self) -> None:
        locks = KeyedLock()
        inside = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("a"):
                await inside.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        assert locks.locked("a")
        async with locks.hold("b"):
            assert not locks.locked("c")
        inside.set()
        await task

    async def test_released_keys_are_discarded(self) -> None:
        locks = KeyedLock()
        async with locks.hold("k"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.locked("k")

    async def test_released_on_error(self) -> None:
        locks = KeyedLock()
        try:
            async with locks.hold("k"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert len(locks) == 0


class TestLifecycleEventBus:
    async def test_emit_calls_handlers_in_order(self) -> None:
        bus = LifecycleEventBus()
        calls: list[str] = []

        async def first(event: LifecycleEvent) -> None:
            calls.append("first")

        async def second(event: LifecycleEvent) -> None:
            calls.append("second")

        bus.subscribe(first)
        bus.subscribe(second)
        bus.subscribe(first)
        await bus.emit(_event())
        assert calls == ["first", "second"]
        assert bus.handler_count == 2

    async def test_failing_handler_does_not_stop_others(self, caplog) -> None:
        bus = LifecycleEventBus()
        seen: list[LifecycleEvent] = []

        async def broken(event: LifecycleEvent) -> None:
            raise RuntimeError("store down")

        async def ok(event: LifecycleEvent) -> None:
            seen.append(event)

        bus.subscribe(broken)
        bus.subscribe(ok)
        await bus.emit(_event())
        assert len(seen) == 1
        assert "Lifecycle handler failed" in caplog.text

    async def test_unsubscribe(self) -> None:
        bus = LifecycleEventBus()
        seen: list[LifecycleEvent] = []

        async def handler(event: LifecycleEvent) -> None:
            seen.append(event)

        bus.subscribe(handler)
        bus.unsubscribe(handler)
        bus.unsubscribe(handler)
        await bus.emit(_event())
        assert seen == []
        assert bus.handler_count == 0

    def test_event_defaults(self) -> None:
        event = _event()
        assert event.event_id
        assert event.occurred_at.tzinfo is not None
        assert event.data == {}
