"""
Transports used to talk to the manager.
"""
from .base import ChannelCallbacks, EventCallback, Result, Transport
from .http import HttpTransport
from .memory import MemoryTransport

__all__ = [
    "ChannelCallbacks",
    "EventCallback",
    "HttpTransport",
    "MemoryTransport",
    "Result",
    "Transport",
]
