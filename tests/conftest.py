"""
Pytest Configuration and Fixtures for the salt_netapi project.

This module provides in-memory stand-ins for the two external collaborators
(the HTTP transport and the event push connection) so tests run without a
salt master.
"""

import json
import logging
import queue
import sys
import threading
from collections import deque
from typing import Any, List, Optional

import pytest

from salt_netapi.errors import StreamClosedError
from salt_netapi.events.models import CloseReason


class FakeTransport:
    """
    Records every post and answers with queued responses, in order.
    A queued exception is raised instead of returned. Once the queue runs dry
    the last response is repeated.
    """
    def __init__(self, *responses: Any):
        self.responses = deque(responses)
        self.requests: List[tuple] = []
        self._last: Any = None

    def add_responses(self, *responses: Any):
        self.responses.extend(responses)

    def post(self, path, payload, timeout=None):
        self.requests.append((path, dict(payload), timeout))
        if self.responses:
            self._last = self.responses.popleft()
        response = self._last
        if isinstance(response, BaseException):
            raise response
        return response


_REMOTE_CLOSE = object()


class FakeEventSource:
    """
    A push connection fed by the test: `push()` frames, `remote_close()` or
    `fail()` the connection. `receive()` blocks like a real socket read.
    """
    def __init__(self, connect_error: Optional[Exception] = None):
        self.connect_error = connect_error
        self.config = None
        self.connected = False
        self.close_calls = 0
        self._frames: queue.Queue = queue.Queue()

    def connect(self, config):
        self.config = config
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def receive(self) -> str:
        item = self._frames.get()
        if isinstance(item, tuple) and item[0] is _REMOTE_CLOSE:
            raise StreamClosedError(item[1])
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.close_calls += 1
        self.connected = False
        # Unblock a pending receive()
        self._frames.put((_REMOTE_CLOSE, None))

    def push(self, *frames: str):
        for frame in frames:
            self._frames.put(frame)

    def remote_close(self, reason: Optional[CloseReason] = None):
        self._frames.put((_REMOTE_CLOSE, reason))

    def fail(self, error: Exception):
        self._frames.put(error)


class RecordingListener:
    """Listener that records what it is told and lets tests wait for it."""
    def __init__(self, name: str = "listener"):
        self.name = name
        self.events = []
        self.closed = []
        self._changed = threading.Condition()

    def notify(self, event):
        with self._changed:
            self.events.append(event)
            self._changed.notify_all()

    def event_stream_closed(self, reason):
        with self._changed:
            self.closed.append(reason)
            self._changed.notify_all()

    def wait_for_events(self, count: int, timeout: float = 2.0) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: len(self.events) >= count, timeout=timeout)

    @property
    def tags(self):
        return [event.tag for event in self.events]

    def __repr__(self):
        return f"RecordingListener({self.name!r})"


def event_frame(tag: str, prefix: str = "data: ", **data) -> str:
    """Builds a salt-api websocket frame."""
    return prefix + json.dumps({"tag": tag, "data": data})


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """
    Configures the Python logging framework globally for all tests,
    so log output is formatted the same way in every test run.
    """
    formatter = logging.Formatter(fmt="%(levelname)-8s %(message)s - %(funcName)s:%(lineno)d ")
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def source():
    return FakeEventSource()


@pytest.fixture
def listener_factory():
    return RecordingListener
