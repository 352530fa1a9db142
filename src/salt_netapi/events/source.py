"""
Push connection boundary for the event stream.

The websocket/SSE client, its handshake and any reconnect policy live behind
the `EventSource` protocol. The stream only connects it, reads frames from
it on its reader thread and closes it.
"""
from dataclasses import dataclass, field
from typing import Optional, Protocol


@dataclass(frozen=True)
class EventStreamConfig:
    """Connection settings handed to `EventSource.connect`."""
    url: str = "ws://localhost:8000/ws"
    token: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = 10.0
    # 0 keeps an idle connection open forever
    idle_timeout: float = 0.0


class EventSource(Protocol):
    """Protocol for the single push connection owned by an `EventStream`."""

    def connect(self, config: Optional[EventStreamConfig]) -> None:
        """Blocks until the connection is established; raises on failure."""

    def receive(self) -> str:
        """
        Blocks until the next frame arrives and returns its text.
        Raises `StreamClosedError` when the remote end closed the connection;
        any other exception is treated as a network failure.
        """

    def close(self) -> None:
        """Releases the connection. Must unblock a pending `receive`."""
