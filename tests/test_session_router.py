"""Tests for the session router."""

from __future__ import annotations

import asyncio

import pytest

from bookswap.realtime.router import Channel, DeliveryReport, SessionRouter
from tests.conftest import BrokenChannel, RecordingChannel, SlowChannel


@pytest.fixture
def router() -> SessionRouter:
    r = SessionRouter(send_timeout_seconds=0.05)
    r.init()
    return r


class TestBindings:
    def test_init_starts_empty(self) -> None:
        router = SessionRouter()
        router.register("u1", RecordingChannel())
        router.init()
        assert router.started
        assert router.channel_count == 0

    def test_register_and_unregister(self, router) -> None:
        ch = RecordingChannel()
        router.register("u1", ch)
        assert router.has_live_channel("u1")
        assert router.channels_for("u1") == [ch]
        router.unregister("u1", ch)
        assert not router.has_live_channel("u1")
        assert router.connected_users == []

    def test_register_is_idempotent(self, router) -> None:
        ch = RecordingChannel()
        router.register("u1", ch)
        router.register("u1", ch)
        assert router.channel_count == 1

    def test_unregister_unknown_is_noop(self, router) -> None:
        router.unregister("u1", RecordingChannel())
        router.register("u1", RecordingChannel())
        router.unregister("u1", RecordingChannel())
        assert router.channel_count == 1

    def test_one_user_many_channels(self, router) -> None:
        a, b = RecordingChannel(), RecordingChannel()
        router.register("u1", a)
        router.register("u1", b)
        router.register("u2", RecordingChannel())
        assert router.channel_count == 3
        assert sorted(router.connected_users) == ["u1", "u2"]
        router.unregister("u1", a)
        assert router.channels_for("u1") == [b]

    def test_close_drops_everything(self, router) -> None:
        router.register("u1", RecordingChannel())
        router.close()
        assert not router.started
        assert router.channel_count == 0

    def test_fakes_satisfy_channel_protocol(self) -> None:
        assert isinstance(RecordingChannel(), Channel)


class TestDeliver:
    async def test_no_channel_means_empty_report(self, router) -> None:
        report = await router.deliver("u1", {"event": "x"})
        assert isinstance(report, DeliveryReport)
        assert report.reached is False
        assert report.delivered == report.failed == report.timed_out == []

    async def test_delivers_to_all_channels(self, router) -> None:
        a, b = RecordingChannel(), RecordingChannel()
        router.register("u1", a)
        router.register("u1", b)
        report = await router.deliver("u1", {"event": "x"})
        assert sorted(report.delivered) == sorted([a.channel_id, b.channel_id])
        assert a.sent == b.sent == [{"event": "x"}]

    async def test_failed_channel_is_dropped(self, router) -> None:
        ok, broken = RecordingChannel(), BrokenChannel()
        router.register("u1", ok)
        router.register("u1", broken)
        report = await router.deliver("u1", {"event": "x"})
        assert report.delivered == [ok.channel_id]
        assert report.failed == [broken.channel_id]
        assert router.channels_for("u1") == [ok]

    async def test_timed_out_channel_is_kept(self, router) -> None:
        slow = SlowChannel()
        router.register("u1", slow)
        report = await router.deliver("u1", {"event": "x"})
        assert report.timed_out == [slow.channel_id]
        assert report.reached is False
        assert router.has_live_channel("u1")

    async def test_unregistered_channel_receives_nothing(self, router) -> None:
        first, second = RecordingChannel(), RecordingChannel()
        router.register("u1", first)
        router.register("u1", second)
        router.unregister("u1", second)
        report = await router.deliver("u1", {"event": "x"})
        assert report.delivered == [first.channel_id]
        assert second.sent == []

    async def test_register_during_delivery_is_safe(self, router) -> None:
        started = asyncio.Event()

        class SignallingChannel(RecordingChannel):
            async def send(self, payload) -> None:
                started.set()
                await asyncio.sleep(0)
                await super().send(payload)

        router.register("u1", SignallingChannel())
        task = asyncio.create_task(router.deliver("u1", {"event": "x"}))
        await started.wait()
        late = RecordingChannel()
        router.register("u1", late)
        report = await task
        assert len(report.delivered) == 1
        assert late.sent == []
        assert router.channel_count == 2
