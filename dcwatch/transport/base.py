"""
Base transport interface.

A transport is the request/response client dcwatch uses to talk to the
manager. All transports must implement this interface so the discovery
and channel code stays backend-agnostic (HTTP, in-memory, ...).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ..models import SubscriptionTarget

# Receives raw event payloads. Must not block.
EventCallback = Callable[[Dict[str, Any]], None]


@dataclass
class Result:
    """Outcome of a transport call."""
    ok: bool
    data: Any = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, data: Any = None) -> "Result":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error_message: str, error_code: Optional[int] = None) -> "Result":
        return cls(ok=False, error_code=error_code, error_message=error_message)


async def _noop() -> None:
    return None


async def _noop_error(exc: BaseException) -> None:
    return None


@dataclass
class ChannelCallbacks:
    """Lifecycle callbacks for the event channel."""
    on_open: Callable[[], Awaitable[None]] = _noop
    on_close: Callable[[], Awaitable[None]] = _noop
    on_error: Callable[[BaseException], Awaitable[None]] = _noop_error


class Transport(ABC):
    """
    Abstract base class for manager transports.

    Request methods report failures through ``Result`` rather than raising,
    except where noted.
    """

    @abstractmethod
    async def check_availability(self) -> Result:
        """Check whether the manager is up."""
        pass

    @abstractmethod
    async def list_services(self) -> Result:
        """
        List the services known to the manager.

        Returns:
            Result whose data is a list of service dicts (``id``, ``name``, ...)
        """
        pass

    @abstractmethod
    async def get_capabilities(self, service_id: str) -> Result:
        """
        Fetch the capability manifest of a service.

        Returns:
            Result whose data is a ProfileMapManifest or CapabilityListManifest
        """
        pass

    @abstractmethod
    async def open_event_channel(self, callbacks: ChannelCallbacks) -> None:
        """
        Start opening the event channel.

        Returns once the attempt has been started; the outcome is reported
        through ``callbacks``.
        """
        pass

    @abstractmethod
    async def close_event_channel(self) -> None:
        """Close the event channel. Safe to call when it is not open."""
        pass

    @abstractmethod
    async def subscribe(
        self,
        target: SubscriptionTarget,
        params: Dict[str, str],
        callback: EventCallback,
    ) -> Result:
        """Register an event subscription; matching events go to ``callback``."""
        pass

    @abstractmethod
    async def unsubscribe(self, target: SubscriptionTarget) -> Result:
        """Remove an event subscription."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        await self.close_event_channel()

    @property
    def name(self) -> str:
        """Return the transport name for logging."""
        return self.__class__.__name__
