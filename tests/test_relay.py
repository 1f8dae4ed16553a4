"""
Tests for the EventRelay.
"""
import asyncio

import pytest

from dcwatch.models import Notification, NotificationKind
from dcwatch.relay import EventRelay

from conftest import wait_for


@pytest.fixture
async def relay():
    relay = EventRelay(max_queue_size=10)
    relay.start()
    yield relay
    await relay.stop()


class TestEventRelay:

    @pytest.mark.asyncio
    async def test_forwards_payload_unchanged(self, relay):
        received = []

        async def consumer(notification):
            received.append(notification)

        relay.add_consumer(consumer)
        payload = {"orientation": {"acceleration": {"x": 1}}, "unknown": [1, 2]}
        relay.on_event(payload)

        await wait_for(lambda: len(received) == 1)
        assert received[0].kind == NotificationKind.EVENT
        assert received[0].payload == payload

    @pytest.mark.asyncio
    async def test_preserves_delivery_order(self, relay):
        received = []

        async def consumer(notification):
            await asyncio.sleep(0)
            received.append(notification.payload["n"])

        relay.add_consumer(consumer)
        for n in range(5):
            relay.on_event({"n": n})

        await wait_for(lambda: len(received) == 5)
        assert received == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_on_event_does_not_wait_for_consumers(self, relay):
        gate = asyncio.Event()
        received = []

        async def slow_consumer(notification):
            await gate.wait()
            received.append(notification)

        relay.add_consumer(slow_consumer)
        relay.on_event({"n": 1})
        relay.on_event({"n": 2})
        assert received == []

        gate.set()
        await wait_for(lambda: len(received) == 2)

    @pytest.mark.asyncio
    async def test_every_consumer_receives(self, relay):
        first, second = [], []

        async def a(notification):
            first.append(notification)

        async def b(notification):
            second.append(notification)

        relay.add_consumer(a)
        relay.add_consumer(b)
        relay.on_event({"n": 1})
        await wait_for(lambda: first and second)

    @pytest.mark.asyncio
    async def test_consumer_errors_do_not_stop_dispatch(self, relay):
        received = []

        async def broken(notification):
            raise RuntimeError("consumer broke")

        async def working(notification):
            received.append(notification)

        relay.add_consumer(broken)
        relay.add_consumer(working)
        relay.on_event({"n": 1})
        relay.on_event({"n": 2})
        await wait_for(lambda: len(received) == 2)

    @pytest.mark.asyncio
    async def test_non_dict_payload_is_relayed_as_is(self, relay):
        received = []

        async def consumer(notification):
            received.append(notification.payload)

        relay.add_consumer(consumer)
        relay.on_event(["not", "a", "dict"])
        relay.on_event({"ok": 1})

        await wait_for(lambda: len(received) == 2)
        assert received == [["not", "a", "dict"], {"ok": 1}]
        assert relay.is_running

    @pytest.mark.asyncio
    async def test_removed_consumer_gets_nothing(self, relay):
        received = []

        async def consumer(notification):
            received.append(notification)

        relay.add_consumer(consumer)
        relay.remove_consumer(consumer)
        await relay.notify(Notification(kind=NotificationKind.WAITING_MANAGER))
        assert received == []


@pytest.mark.asyncio
async def test_full_queue_drops_oldest():
    relay = EventRelay(max_queue_size=2)
    received = []

    async def consumer(notification):
        received.append(notification.payload["n"])

    relay.add_consumer(consumer)
    # Dispatcher not started yet, so the queue fills up.
    for n in range(4):
        relay.on_event({"n": n})
    assert relay.dropped == 2

    relay.start()
    await wait_for(lambda: len(received) == 2)
    await relay.stop()
    assert received == [2, 3]


@pytest.mark.asyncio
async def test_stop_delivers_queued_events():
    relay = EventRelay()
    received = []

    async def consumer(notification):
        received.append(notification)

    relay.add_consumer(consumer)
    relay.start()
    for n in range(3):
        relay.on_event({"n": n})
    await relay.stop()

    assert len(received) == 3
    assert not relay.is_running
