"""
In-memory transport.

This transport is primarily used for:
- Local development without a running manager
- Unit testing
- Demo purposes

The manager is simulated by scripted availability results, a registry list
and per-service manifests. Events are pushed with ``deliver()``.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import TransportError
from ..models import CapabilityListManifest, ProfileMapManifest, SubscriptionTarget
from .base import ChannelCallbacks, EventCallback, Result, Transport

logger = logging.getLogger(__name__)


class MemoryTransport(Transport):
    """
    In-memory transport for development and testing.

    Features:
    - Availability can be scripted as a sequence of results
    - Every call is recorded in ``calls`` for assertions
    - Channel opening succeeds by default; ``fail_open`` makes it fail
    """

    def __init__(
        self,
        services: Optional[List[Dict[str, Any]]] = None,
        manifests: Optional[Dict[str, Any]] = None,
        availability: Optional[List[bool]] = None,
        fail_open: bool = False,
        fail_subscribe: bool = False,
    ):
        """
        Initialize the memory transport.

        Args:
            services: Registry entries returned by list_services()
            manifests: service_id -> manifest (or None to fail that query)
            availability: Results of successive availability checks;
                the last value repeats once the list is exhausted
            fail_open: Report an error instead of opening the event channel
            fail_subscribe: Reject event registrations
        """
        self.services: List[Dict[str, Any]] = list(services or [])
        self.manifests: Dict[str, Any] = dict(manifests or {})
        self.availability: List[bool] = list(availability or [True])
        self.fail_open = fail_open
        self.fail_subscribe = fail_subscribe

        self.calls: List[Tuple[str, Any]] = []
        self._callbacks: Optional[ChannelCallbacks] = None
        self._open_task: Optional[asyncio.Task] = None
        self._channel_open = False
        self._subscriptions: Dict[SubscriptionTarget, EventCallback] = {}

    def calls_to(self, method: str) -> List[Any]:
        """Arguments of every recorded call to ``method``."""
        return [args for name, args in self.calls if name == method]

    @property
    def channel_open(self) -> bool:
        return self._channel_open

    async def check_availability(self) -> Result:
        self.calls.append(("check_availability", None))
        available = self.availability.pop(0) if len(self.availability) > 1 else self.availability[0]
        if available:
            return Result.success({"result": 0})
        return Result.failure("Manager not available", error_code=1)

    async def list_services(self) -> Result:
        self.calls.append(("list_services", None))
        return Result.success(list(self.services))

    async def get_capabilities(self, service_id: str) -> Result:
        self.calls.append(("get_capabilities", service_id))
        manifest = self.manifests.get(service_id)
        if manifest is None:
            return Result.failure(f"Unknown service: {service_id}", error_code=6)
        if isinstance(manifest, dict):
            manifest = ProfileMapManifest(profiles=manifest)
        elif isinstance(manifest, list):
            manifest = CapabilityListManifest(supports=manifest)
        return Result.success(manifest)

    async def open_event_channel(self, callbacks: ChannelCallbacks) -> None:
        self.calls.append(("open_event_channel", None))
        self._callbacks = callbacks
        # Report asynchronously, like a real connection would.
        self._open_task = asyncio.create_task(self._complete_open())

    async def _complete_open(self) -> None:
        if self._callbacks is None:
            return
        if self.fail_open:
            await self._callbacks.on_error(TransportError("Memory channel refused"))
            return
        self._channel_open = True
        logger.info("Memory channel opened")
        await self._callbacks.on_open()

    async def close_event_channel(self) -> None:
        self.calls.append(("close_event_channel", None))
        was_open = self._channel_open
        self._channel_open = False
        self._subscriptions.clear()
        if was_open and self._callbacks:
            await self._callbacks.on_close()

    async def fail_channel(self, error: Optional[BaseException] = None) -> None:
        """Simulate the manager dropping the event channel."""
        self._channel_open = False
        self._subscriptions.clear()
        if self._callbacks:
            await self._callbacks.on_error(error or TransportError("Memory channel dropped"))

    async def subscribe(
        self,
        target: SubscriptionTarget,
        params: Dict[str, str],
        callback: EventCallback,
    ) -> Result:
        self.calls.append(("subscribe", (target, dict(params))))
        if self.fail_subscribe or not self._channel_open:
            return Result.failure("Subscription rejected", error_code=2)
        self._subscriptions[target] = callback
        return Result.success({"result": 0})

    async def unsubscribe(self, target: SubscriptionTarget) -> Result:
        self.calls.append(("unsubscribe", target))
        if self._subscriptions.pop(target, None) is None:
            return Result.failure("Not subscribed", error_code=2)
        return Result.success({"result": 0})

    def deliver(self, payload: Dict[str, Any]) -> int:
        """
        Push an event payload to every matching subscription.

        Returns:
            Number of subscriptions the event was delivered to
        """
        delivered = 0
        for target, callback in list(self._subscriptions.items()):
            if target.matches_event(payload):
                callback(payload)
                delivered += 1
        return delivered
