"""
Session controller: runs one watch from manager discovery to event relay.

Usage:
    from dcwatch import SessionController
    from dcwatch.transport import HttpTransport

    session = SessionController(HttpTransport(manager_url="http://localhost:4035"))

    @session.on_notification(NotificationKind.EVENT)
    async def handle_event(notification):
        print(notification.payload)

    await session.start("/gotapi/deviceOrientation/onDeviceOrientation")
    ...
    await session.stop()
"""
import asyncio
import logging
from typing import Callable, Optional

from .channel import EventChannelManager
from .config import WatchSettings, settings as default_settings
from .discovery import await_available, find_service
from .exceptions import ChannelError, MalformedPath
from .models import ChannelState, Notification, NotificationKind, PathSpec, ServiceDescriptor
from .path import parse
from .relay import Consumer, EventRelay
from .retry import CancelToken, SleepFunc
from .transport.base import Transport

logger = logging.getLogger(__name__)


class SessionController:
    """
    Watches one capability path at a time.

    ``start()`` spawns a worker task that runs, in order:

    1. the availability gate (wait for the manager),
    2. the discovery loop (wait for a supporting service),
    3. opening the event channel,
    4. the event subscription,

    and then holds the subscription until ``stop()`` or a channel failure.
    Consumers receive status notifications along the way and one EVENT
    notification per relayed event.

    Attributes:
        transport: Transport used to reach the manager
        settings: Polling, subscription and session settings
    """

    def __init__(
        self,
        transport: Transport,
        settings: Optional[WatchSettings] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        """
        Initialize the session controller.

        Args:
            transport: Transport used to reach the manager
            settings: Settings (defaults to the environment-loaded settings)
            sleep: Wait implementation for the polling loops (tests pass a
                fast one)
        """
        self.transport = transport
        self.settings = settings or default_settings
        self._sleep = sleep

        self._relay = EventRelay(max_queue_size=self.settings.event_queue_size)
        self._lock = asyncio.Lock()
        self._worker: Optional[asyncio.Task] = None
        self._cancel: Optional[CancelToken] = None
        self._channel: Optional[EventChannelManager] = None
        self._spec: Optional[PathSpec] = None
        self._service: Optional[ServiceDescriptor] = None
        self._channel_lost: Optional[asyncio.Event] = None
        self._channel_error: Optional[BaseException] = None

    # =========================================================================
    # Consumers
    # =========================================================================

    def add_consumer(self, consumer: Consumer) -> Consumer:
        """Register a consumer for every notification."""
        return self._relay.add_consumer(consumer)

    def remove_consumer(self, consumer: Consumer) -> None:
        self._relay.remove_consumer(consumer)

    def on_notification(self, kind: NotificationKind) -> Callable[[Consumer], Consumer]:
        """
        Decorator to register a consumer for one kind of notification.

        Usage:
            @session.on_notification(NotificationKind.SERVICE_AVAILABLE)
            async def found(notification):
                print(notification.service_name)
        """
        def decorator(func: Consumer) -> Consumer:
            async def filtered(notification: Notification) -> None:
                if notification.kind == kind:
                    await func(notification)

            self._relay.add_consumer(filtered)
            logger.debug(f"Registered consumer for {kind.value}")
            return func
        return decorator

    def on_all_notifications(self, func: Consumer) -> Consumer:
        """Decorator to register a catch-all consumer."""
        return self.add_consumer(func)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_active(self) -> bool:
        """True while a session worker is running."""
        return self._worker is not None and not self._worker.done()

    @property
    def state(self) -> ChannelState:
        """State of the session's event channel."""
        if self._channel is None:
            return ChannelState.CLOSED
        return self._channel.state

    @property
    def spec(self) -> Optional[PathSpec]:
        return self._spec

    @property
    def service(self) -> Optional[ServiceDescriptor]:
        """The service found by discovery, once there is one."""
        return self._service

    # =========================================================================
    # Commands
    # =========================================================================

    async def start(self, path: str) -> None:
        """
        Start watching ``path``.

        Returns as soon as the worker is spawned. A session that is already
        running is fully stopped first.

        Raises:
            MalformedPath: If ``path`` is not a valid capability path; no
                worker is spawned in that case
        """
        try:
            spec = parse(path)
        except MalformedPath as e:
            logger.error(f"Not watching: {e}")
            raise

        async with self._lock:
            if self._worker is not None or self._channel is not None:
                logger.info(f"Replacing session for {self._spec} with {spec}")
                await self._stop_locked()

            self._spec = spec
            self._cancel = CancelToken(sleep=self._sleep)
            self._relay.start()
            self._worker = asyncio.create_task(self._run(spec, self._cancel))
            logger.info(f"Started session for {spec}")

    async def stop(self) -> None:
        """
        Stop the current session. Safe to call at any time, and more than once.
        """
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        if self._worker is None and self._channel is None:
            return

        if self._cancel:
            self._cancel.cancel()

        if self._worker is not None:
            # Cooperative: an in-flight transport call finishes first.
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Session worker ended with an error: {e}")
            self._worker = None

        await self._close_channel()
        await self._relay.stop()

        logger.info(f"Stopped session for {self._spec}")
        self._cancel = None
        self._service = None

    # =========================================================================
    # Worker
    # =========================================================================

    async def _notify(self, kind: NotificationKind, **kwargs) -> None:
        await self._relay.notify(Notification(kind=kind, **kwargs))

    async def _close_channel(self) -> None:
        if self._channel is not None:
            await self._channel.close()
            self._channel = None

    async def _run(self, spec: PathSpec, cancel: CancelToken) -> None:
        """Worker body: run the watch, restarting after failures if configured."""
        policy = self.settings.retry_policy("discovery")
        attempt = 0

        while not cancel.cancelled:
            try:
                if not await self._run_once(spec, cancel):
                    break
            except ChannelError as e:
                logger.error(f"Session for {spec} failed: {e}")
                await self._close_channel()
                self._service = None
                if not self.settings.restart_on_failure:
                    await self._notify(NotificationKind.SESSION_FAILED, payload={"error": str(e)})
                    return
                logger.info(f"Restarting discovery for {spec}")
                if await cancel.sleep(policy.delay(attempt)):
                    break
                attempt += 1
            except Exception as e:
                logger.error(f"Unexpected error in session for {spec}: {e}")
                await self._close_channel()
                await self._notify(NotificationKind.SESSION_FAILED, payload={"error": str(e)})
                return

        logger.info(f"Session for {spec} cancelled")

    async def _run_once(self, spec: PathSpec, cancel: CancelToken) -> bool:
        """
        Run gate, discovery, open and subscribe once, then hold until the
        channel is lost.

        Returns:
            False when cancelled

        Raises:
            ChannelError: If opening, subscribing, or the open channel fails
        """
        await self._notify(NotificationKind.WAITING_MANAGER)
        if not await await_available(self.transport, cancel, self.settings.retry_policy("availability")):
            return False
        logger.info("Manager is available")
        await self._notify(NotificationKind.MANAGER_AVAILABLE)

        await self._notify(NotificationKind.WAITING_SERVICE)
        service = await find_service(self.transport, spec, cancel, self.settings.retry_policy("discovery"))
        if service is None:
            return False
        self._service = service
        await self._notify(NotificationKind.SERVICE_AVAILABLE, service_name=service.name)
        if cancel.cancelled:
            return False

        self._channel_lost = asyncio.Event()
        self._channel_error = None
        self._channel = EventChannelManager(
            self.transport,
            self._relay.on_event,
            profile=self.settings.event_profile,
            interface=self.settings.event_interface,
            attribute=self.settings.event_attribute,
            on_failure=self._on_channel_failure,
        )
        await self._channel.open()
        if not await self._channel.wait_until_open(cancel, timeout=self.settings.open_timeout):
            return False
        if cancel.cancelled:
            return False
        await self._channel.subscribe(service, spec, self.settings.event_params())

        lost = asyncio.ensure_future(self._channel_lost.wait())
        stopped = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({lost, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            lost.cancel()
            stopped.cancel()

        if cancel.cancelled:
            return False
        raise ChannelError(f"Event channel lost: {self._channel_error}")

    async def _on_channel_failure(self, error: BaseException) -> None:
        self._channel_error = error
        if self._channel_lost is not None:
            self._channel_lost.set()

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
