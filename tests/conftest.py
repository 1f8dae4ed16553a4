"""
Shared fixtures for dcwatch tests.
"""
import asyncio

import pytest

from dcwatch.config import WatchSettings
from dcwatch.transport.memory import MemoryTransport

ORIENTATION_PATH = "/gotapi/deviceOrientation/onDeviceOrientation"

ORIENTATION_MANIFEST = {
    "deviceOrientation": {
        "paths": {
            "/onDeviceOrientation": {"get": {}, "put": {}, "delete": {}},
        },
    },
}

BATTERY_MANIFEST = {
    "battery": {
        "paths": {
            "/level": {"get": {}},
        },
    },
}


def orientation_event(service_id: str = "host.abc", **fields) -> dict:
    """A deviceOrientation event as a manager sends it."""
    event = {
        "serviceId": service_id,
        "profile": "deviceOrientation",
        "attribute": "onDeviceOrientation",
        "orientation": {
            "acceleration": {"x": 0.1, "y": 0.2, "z": 9.8},
            "interval": 500,
        },
    }
    event.update(fields)
    return event


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it is true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def fast_settings():
    """Settings with millisecond polling so loops finish quickly."""
    return WatchSettings(
        availability_base_delay=0.001,
        discovery_base_delay=0.001,
        max_delay=0.005,
        open_timeout=2.0,
    )


@pytest.fixture
def transport():
    """Memory transport with one host service supporting deviceOrientation."""
    return MemoryTransport(
        services=[
            {"id": "battery.1", "name": "Battery"},
            {"id": "host.abc", "name": "Host"},
        ],
        manifests={
            "battery.1": BATTERY_MANIFEST,
            "host.abc": ORIENTATION_MANIFEST,
        },
    )
