"""
Data Models for the Event Stream.

Defines the values that travel from the push connection to listeners:
the decoded `Event`, the `CloseReason` handed out when the stream ends,
the `EventListener` contract and the opaque `Subscription` handle.
"""
import fnmatch
import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from salt_netapi.errors import EventFrameError

# salt-api websocket frames are sent as "data: {...}"
FRAME_PREFIX = "data:"


@dataclass(frozen=True)
class Event:
    """A tagged fact pushed by the master, e.g. `salt/job/<jid>/ret/<minion>`."""
    tag: str
    data: Mapping[str, Any]

    def __post_init__(self):
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @property
    def stamp(self) -> Optional[str]:
        """The master's timestamp for the event, when the frame carried one."""
        return self.data.get("_stamp")

    def matches(self, pattern: str) -> bool:
        """Shell-style match against the tag, e.g. `salt/job/*/ret/*`."""
        return fnmatch.fnmatchcase(self.tag, pattern)

    def to_json(self) -> str:
        return json.dumps({"tag": self.tag, "data": dict(self.data)})

    @classmethod
    def from_frame(cls, raw: str) -> "Event":
        """
        Decodes one inbound frame.
        Raises `EventFrameError` when the frame is not an object with a string
        `tag` and an object `data`.
        """
        text = raw.strip()
        if text.startswith(FRAME_PREFIX):
            text = text[len(FRAME_PREFIX):].lstrip()
        try:
            message = json.loads(text)
        except (ValueError, RecursionError) as e:
            raise EventFrameError(f"Frame is not JSON: {raw[:80]!r}") from e

        if not isinstance(message, dict):
            raise EventFrameError(f"Frame is not a JSON object: {raw[:80]!r}")
        tag = message.get("tag")
        data = message.get("data")
        if not isinstance(tag, str) or not isinstance(data, dict):
            raise EventFrameError(f"Frame lacks a string 'tag' and an object 'data': {raw[:80]!r}")
        return cls(tag=tag, data=data)


@dataclass(frozen=True)
class CloseReason:
    """Why the stream ended, following websocket close codes where available."""
    code: Optional[int] = None
    reason: str = ""

    NORMAL_CLOSURE = 1000
    ABNORMAL_CLOSURE = 1006


class EventListener(Protocol):
    """Something that wants to hear about events."""

    def notify(self, event: Event) -> None:
        """Called once per event, in arrival order."""

    def event_stream_closed(self, reason: Optional[CloseReason]) -> None:
        """Called once when the connection ended on the remote or network side."""


@dataclass(frozen=True)
class Subscription:
    """Opaque handle returned by `EventStream.add_listener`."""
    stream_id: int
    id: int
