"""
dcwatch - discover a Device Connect service by capability and relay its events.
"""

__version__ = "0.1.0"

from .channel import EventChannelManager
from .config import WatchSettings
from .discovery import await_available, find_service, supports
from .exceptions import (
    ChannelError,
    DcwatchError,
    MalformedPath,
    SubscribeError,
    TransportError,
)
from .models import (
    CapabilityListManifest,
    ChannelState,
    Notification,
    NotificationKind,
    PathSpec,
    ProfileMapManifest,
    ServiceDescriptor,
    SubscriptionHandle,
    SubscriptionTarget,
    parse_manifest,
)
from .path import parse
from .relay import EventRelay
from .retry import CancelToken, RetryPolicy
from .session import SessionController

__all__ = [
    "__version__",
    # Core
    "SessionController",
    "EventChannelManager",
    "EventRelay",
    "WatchSettings",
    "parse",
    "await_available",
    "find_service",
    "supports",
    "CancelToken",
    "RetryPolicy",
    # Models
    "CapabilityListManifest",
    "ChannelState",
    "Notification",
    "NotificationKind",
    "PathSpec",
    "ProfileMapManifest",
    "ServiceDescriptor",
    "SubscriptionHandle",
    "SubscriptionTarget",
    "parse_manifest",
    # Errors
    "ChannelError",
    "DcwatchError",
    "MalformedPath",
    "SubscribeError",
    "TransportError",
]
