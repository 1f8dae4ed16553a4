"""
Tests for the MemoryTransport.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from dcwatch.exceptions import TransportError
from dcwatch.models import CapabilityListManifest, ProfileMapManifest, SubscriptionTarget
from dcwatch.transport.base import ChannelCallbacks
from dcwatch.transport.memory import MemoryTransport

TARGET = SubscriptionTarget(service_id="host.abc", profile="deviceOrientation", attribute="onDeviceOrientation")


class TestMemoryTransport:

    async def test_availability_sequence_repeats_last_value(self):
        transport = MemoryTransport(availability=[False, True])
        assert not (await transport.check_availability()).ok
        assert (await transport.check_availability()).ok
        assert (await transport.check_availability()).ok

    async def test_manifest_shapes(self):
        transport = MemoryTransport(manifests={
            "a": {"battery": {"paths": {"/level": {}}}},
            "b": ["battery"],
        })
        assert isinstance((await transport.get_capabilities("a")).data, ProfileMapManifest)
        assert isinstance((await transport.get_capabilities("b")).data, CapabilityListManifest)
        assert not (await transport.get_capabilities("c")).ok

    async def test_open_reports_asynchronously(self):
        transport = MemoryTransport()
        opened = asyncio.Event()
        await transport.open_event_channel(ChannelCallbacks(on_open=AsyncMock(side_effect=lambda: opened.set())))
        assert not transport.channel_open
        await asyncio.wait_for(opened.wait(), timeout=1.0)
        assert transport.channel_open

    async def test_refused_open_reports_transport_error(self):
        transport = MemoryTransport(fail_open=True)
        failed = asyncio.Event()
        errors = []

        async def on_error(error):
            errors.append(error)
            failed.set()

        await transport.open_event_channel(ChannelCallbacks(on_error=on_error))
        await asyncio.wait_for(failed.wait(), timeout=1.0)

        assert isinstance(errors[0], TransportError)
        assert not transport.channel_open

    async def test_subscribe_requires_open_channel(self):
        transport = MemoryTransport()
        result = await transport.subscribe(TARGET, {}, lambda payload: None)
        assert not result.ok

    async def test_deliver_routes_to_matching_subscription(self):
        transport = MemoryTransport()
        opened = asyncio.Event()
        await transport.open_event_channel(ChannelCallbacks(on_open=AsyncMock(side_effect=lambda: opened.set())))
        await asyncio.wait_for(opened.wait(), timeout=1.0)

        received = []
        assert (await transport.subscribe(TARGET, {}, received.append)).ok

        assert transport.deliver({"serviceId": "host.abc", "profile": "deviceOrientation",
                                  "attribute": "onDeviceOrientation"}) == 1
        assert transport.deliver({"serviceId": "other", "profile": "deviceOrientation",
                                  "attribute": "onDeviceOrientation"}) == 0
        assert len(received) == 1

    async def test_close_calls_on_close_once(self):
        transport = MemoryTransport()
        on_close = AsyncMock()
        opened = asyncio.Event()
        await transport.open_event_channel(ChannelCallbacks(
            on_open=AsyncMock(side_effect=lambda: opened.set()),
            on_close=on_close,
        ))
        await asyncio.wait_for(opened.wait(), timeout=1.0)

        await transport.close_event_channel()
        await transport.close_event_channel()

        on_close.assert_awaited_once()
