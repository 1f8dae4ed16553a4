"""
Exception hierarchy for dcwatch.

Transient transport failures during availability checks and discovery are
never raised out of the polling loops; they are logged and retried. The
exceptions below are what callers of the session and channel APIs can see.
"""


class DcwatchError(Exception):
    """Base exception for dcwatch errors."""
    pass


class MalformedPath(DcwatchError, ValueError):
    """Raised when a capability path cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed capability path {path!r}: {reason}")


class TransportError(DcwatchError):
    """Raised when the transport cannot complete a request."""
    pass


class ChannelError(DcwatchError):
    """Raised when the event channel cannot be opened or has failed."""
    pass


class SubscribeError(ChannelError):
    """Raised when an event subscription could not be registered."""
    pass
