"""
Event channel management.

The EventChannelManager owns the channel state and the single active
subscription of a session. Channel lifecycle callbacks only update state
and log; reconnecting is left to whoever registered ``on_failure``.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from .exceptions import ChannelError, SubscribeError
from .models import (
    ChannelState,
    PathSpec,
    ServiceDescriptor,
    SubscriptionHandle,
    SubscriptionTarget,
)
from .retry import CancelToken
from .transport.base import ChannelCallbacks, EventCallback, Transport

logger = logging.getLogger(__name__)

FailureHandler = Callable[[BaseException], Awaitable[None]]


class EventChannelManager:
    """
    Opens the event channel, registers the event subscription and tears
    both down again.

    State machine::

        CLOSED -> CONNECTING -> OPEN -> CLOSED
                           \\        \\-> FAILED
                            \\-> FAILED

    Attributes:
        transport: Transport the channel runs on
        profile: Event profile to subscribe to (None: use the watched path's)
        interface: Event interface (used only together with ``profile``)
        attribute: Event attribute (None: use the watched path's)
    """

    def __init__(
        self,
        transport: Transport,
        event_callback: EventCallback,
        profile: Optional[str] = "deviceOrientation",
        interface: Optional[str] = None,
        attribute: Optional[str] = "onDeviceOrientation",
        on_failure: Optional[FailureHandler] = None,
    ):
        self.transport = transport
        self.profile = profile
        self.interface = interface
        self.attribute = attribute
        self._event_callback = event_callback
        self._on_failure = on_failure

        self._state = ChannelState.CLOSED
        self._state_changed = asyncio.Event()
        self._handle: Optional[SubscriptionHandle] = None
        self._closing = False

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def subscription(self) -> Optional[SubscriptionHandle]:
        """The active subscription, if any."""
        if self._handle is None or self._handle.released:
            return None
        return self._handle

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.info(f"Event channel {self._state.value} -> {state.value}")
        self._state = state
        self._state_changed.set()

    # =========================================================================
    # Transport callbacks
    # =========================================================================

    async def _on_open(self) -> None:
        self._set_state(ChannelState.OPEN)

    async def _on_close(self) -> None:
        was_open = self._state == ChannelState.OPEN
        self._set_state(ChannelState.CLOSED)
        if was_open and not self._closing:
            await self._report_failure(ChannelError("Event channel closed by manager"))

    async def _on_error(self, error: BaseException) -> None:
        logger.warning(f"Event channel error: {error}")
        self._set_state(ChannelState.FAILED)
        if not self._closing:
            await self._report_failure(error)

    async def _report_failure(self, error: BaseException) -> None:
        if self._on_failure is None:
            return
        try:
            await self._on_failure(error)
        except Exception as e:
            logger.error(f"Error in channel failure handler: {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        """
        Start opening the event channel.

        Raises:
            ChannelError: If the transport refuses to start the channel
        """
        if self._state in (ChannelState.CONNECTING, ChannelState.OPEN):
            logger.warning(f"Event channel already {self._state.value}")
            return

        self._state_changed.clear()
        self._set_state(ChannelState.CONNECTING)
        callbacks = ChannelCallbacks(
            on_open=self._on_open,
            on_close=self._on_close,
            on_error=self._on_error,
        )
        try:
            await self.transport.open_event_channel(callbacks)
        except Exception as e:
            self._set_state(ChannelState.FAILED)
            raise ChannelError(f"Failed to open event channel: {e}") from e

    async def wait_until_open(self, cancel: CancelToken, timeout: Optional[float] = None) -> bool:
        """
        Wait for the channel to reach OPEN.

        Returns:
            True once open, False if cancelled first

        Raises:
            ChannelError: If the channel failed, closed, or did not open in time
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            if cancel.cancelled:
                return False
            if self._state == ChannelState.OPEN:
                return True
            if self._state != ChannelState.CONNECTING:
                raise ChannelError(f"Event channel {self._state.value} before opening")

            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                raise ChannelError(f"Event channel did not open within {timeout}s")

            self._state_changed.clear()
            state_wait = asyncio.ensure_future(self._state_changed.wait())
            cancel_wait = asyncio.ensure_future(cancel.wait())
            try:
                await asyncio.wait(
                    {state_wait, cancel_wait},
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                state_wait.cancel()
                cancel_wait.cancel()

    def build_target(self, service: ServiceDescriptor, spec: PathSpec) -> SubscriptionTarget:
        """Subscription target for ``service``: the configured event, or the watched path's."""
        if self.profile and self.attribute:
            return SubscriptionTarget(
                api=spec.api,
                service_id=service.id,
                profile=self.profile,
                interface=self.interface,
                attribute=self.attribute,
            )
        if spec.attribute is None:
            raise SubscribeError(f"{spec.path} names no event attribute to subscribe to")
        return SubscriptionTarget(
            api=spec.api,
            service_id=service.id,
            profile=spec.profile,
            interface=spec.interface,
            attribute=spec.attribute,
        )

    async def subscribe(
        self,
        service: ServiceDescriptor,
        spec: PathSpec,
        params: Optional[Dict[str, str]] = None,
    ) -> SubscriptionHandle:
        """
        Register the event subscription for ``service``.

        Raises:
            SubscribeError: If the channel is not open, a subscription is
                already active, or the transport rejects the registration
        """
        if self._state != ChannelState.OPEN:
            raise SubscribeError(f"Cannot subscribe while channel is {self._state.value}")
        if self.subscription is not None:
            raise SubscribeError("A subscription is already active on this channel")

        target = self.build_target(service, spec)
        params = dict(params or {})

        try:
            result = await self.transport.subscribe(target, params, self._event_callback)
        except Exception as e:
            raise SubscribeError(f"Subscribe to {target.path} failed: {e}") from e

        if not result.ok:
            raise SubscribeError(
                f"Subscribe to {target.path} rejected: {result.error_message} (code {result.error_code})"
            )

        self._handle = SubscriptionHandle(target=target, params=params)
        logger.info(f"Subscribed to {target.path} on {service.name} ({service.id})")
        return self._handle

    async def close(self) -> None:
        """
        Release the subscription and close the channel. Idempotent.
        """
        if self._state == ChannelState.CLOSED and self.subscription is None:
            return

        self._closing = True
        try:
            handle = self.subscription
            if handle is not None:
                handle.released = True
                try:
                    result = await self.transport.unsubscribe(handle.target)
                    if not result.ok:
                        logger.warning(f"Unsubscribe from {handle.target.path} failed: {result.error_message}")
                except Exception as e:
                    logger.warning(f"Unsubscribe from {handle.target.path} failed: {e}")

            try:
                await self.transport.close_event_channel()
            except Exception as e:
                logger.warning(f"Error closing event channel: {e}")
            self._set_state(ChannelState.CLOSED)
        finally:
            self._closing = False
