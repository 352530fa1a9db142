"""
Exception types raised by the salt-api client.

Only structural or transport level impossibilities are raised. Failures the
result decoder can classify stay inside the `Result` union
(see `salt_netapi.calls.results`).
"""
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from salt_netapi.events.models import CloseReason


class SaltApiError(Exception):
    """Base exception for the salt-api client."""


class ConfigError(SaltApiError):
    """Raised when the client configuration is missing or invalid."""


class TransportError(SaltApiError):
    """Raised by transports when a request cannot be delivered (refused, timeout, ...)."""


class ProtocolError(SaltApiError):
    """Raised when the service answers with an envelope of an unexpected shape."""


class StreamError(SaltApiError):
    """Raised on misuse of an event stream or when its connection cannot be opened."""


class StreamClosedError(StreamError):
    """
    Raised by an event source when the remote end closed the connection.
    Carries the close reason reported by the transport, when there is one.
    """
    def __init__(self, reason: Optional["CloseReason"] = None):
        self.reason = reason
        super().__init__(f"Event stream closed by remote: {reason}")


class EventFrameError(SaltApiError, ValueError):
    """Raised when an inbound frame is not a well formed event."""
