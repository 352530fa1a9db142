"""
Event Stream and its Reader Thread.

This module contains the `EventStream` class. It is responsible for:
- Owning the single push connection (an `EventSource`) for its whole life.
- Running one dedicated reader thread that pulls frames off the connection.
- Decoding each frame into an `Event` and delivering it, in arrival order,
  to every listener registered at that moment.
- Keeping the listener table consistent while callers on other threads add
  and remove listeners during delivery.
- Reporting a remote or network side termination exactly once to each
  listener before the stream becomes permanently closed.

One `threading.Lock` guards the listener table, the state and the closing
flag. Listener callbacks always run outside of it.
"""
import itertools
import logging
import threading
from enum import Enum
from typing import Dict, Optional, Union

from salt_netapi.errors import EventFrameError, StreamClosedError, StreamError
from salt_netapi.events.models import CloseReason, Event, EventListener, Subscription
from salt_netapi.events.source import EventSource, EventStreamConfig

logger = logging.getLogger(__name__)

_stream_ids = itertools.count(1)


class StreamState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class EventStream:
    source: EventSource
    _lock: threading.Lock
    _listeners: Dict[int, EventListener]
    _state: StreamState
    _closing: bool  # set once no further delivery may happen
    _closed_event: threading.Event
    _reader_thread: Optional[threading.Thread]

    """
    Delivers the events of one push connection to a dynamic set of listeners.
    """
    def __init__(self, source: EventSource):
        self.source = source
        self._lock = threading.Lock()
        self._listeners = {}
        self._slot_ids = itertools.count(1)
        self._stream_id = next(_stream_ids)
        self._state = StreamState.CONNECTING
        self._closing = False
        self._closed_event = threading.Event()
        self._reader_thread = None

    @property
    def state(self) -> StreamState:
        with self._lock:
            return self._state

    def is_closed(self) -> bool:
        return self.state is StreamState.CLOSED

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def open(self, config: Optional[EventStreamConfig] = None):
        """
        Establishes the push connection and starts the reader thread.
        Raises `StreamError` if the stream is closed or the connection fails;
        in the latter case listeners are told the stream closed.
        """
        with self._lock:
            if self._closing:
                raise StreamError("Cannot open an event stream that has been closed.")
            if self._reader_thread is not None:
                logger.warning("Attempted to open the event stream, but it is already open.")
                return
            self._reader_thread = threading.Thread(target=self._reader_loop, name="EventStreamReader", daemon=True)

        try:
            self.source.connect(config)
        except Exception as e:
            if self._closing:
                # close() was called while we were connecting
                logger.info(f"Event stream closed while connecting: {e}")
                return
            logger.error(f"Failed to open event stream: {e}")
            self._terminate(CloseReason(CloseReason.ABNORMAL_CLOSURE, str(e)))
            raise StreamError(f"Failed to open event stream: {e}") from e

        with self._lock:
            closed_meanwhile = self._closing
            if not closed_meanwhile:
                self._state = StreamState.OPEN
        if closed_meanwhile:
            self._release()
            return

        self._reader_thread.start()
        logger.info(f"Event stream {self._stream_id} open.")

    def add_listener(self, listener: EventListener) -> Subscription:
        """
        Registers `listener`. It receives events that arrive from now on only.
        """
        with self._lock:
            slot = next(self._slot_ids)
            self._listeners[slot] = listener
            closing = self._closing
        if closing:
            logger.debug(f"Listener {listener!r} added to a closed event stream; it will not be notified.")
        return Subscription(stream_id=self._stream_id, id=slot)

    def remove_listener(self, subscription: Union[Subscription, EventListener]) -> bool:
        """
        Removes a listener by its subscription handle, or by the listener object
        itself (matched by identity). Unknown handles are ignored.
        Returns whether a listener was removed.
        """
        with self._lock:
            if isinstance(subscription, Subscription):
                if subscription.stream_id != self._stream_id:
                    return False
                return self._listeners.pop(subscription.id, None) is not None

            for slot, listener in self._listeners.items():
                if listener is subscription:
                    del self._listeners[slot]
                    return True
        return False

    def on_message(self, raw: str):
        """
        Handles one inbound frame: decodes it and delivers the event to every
        listener registered when the frame arrived. Malformed frames are dropped.
        """
        if self._closing:
            logger.debug("Dropping frame received after the event stream closed.")
            return
        try:
            event = Event.from_frame(raw)
        except EventFrameError as e:
            logger.warning(f"Dropping malformed event frame: {e}")
            return

        with self._lock:
            snapshot = list(self._listeners.items())

        for slot, listener in snapshot:
            with self._lock:
                if self._closing:
                    return
                if slot not in self._listeners:
                    continue  # removed while this frame was being delivered
            try:
                listener.notify(event)
            except Exception:
                logger.exception(f"Listener {listener!r} failed on event '{event.tag}'")

    def close(self):
        """
        Closes the stream and releases the connection. Idempotent.
        Does not wait for a delivery that is in progress on the reader thread.
        """
        with self._lock:
            already_closing = self._closing
            self._closing = True
            self._state = StreamState.CLOSED
        if already_closing:
            return

        logger.info(f"Closing event stream {self._stream_id}...")
        self._release()
        self._closed_event.set()

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the stream is closed. Returns False if `timeout` elapsed first."""
        return self._closed_event.wait(timeout)

    def __enter__(self) -> "EventStream":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _reader_loop(self):
        """
        The main loop of the reader thread: pull frames until the connection
        ends or the stream is closed.
        """
        logger.info("Event stream reader has started.")
        reason: Optional[CloseReason] = None

        while not self._closing:
            try:
                raw = self.source.receive()
            except StreamClosedError as e:
                reason = e.reason
                break
            except Exception as e:
                if not self._closing:
                    logger.error(f"Event stream connection lost: {e}")
                reason = CloseReason(CloseReason.ABNORMAL_CLOSURE, str(e))
                break
            try:
                self.on_message(raw)
            except Exception:
                # A single bad frame must not stop the reader
                logger.exception("Unexpected error while handling an event frame")

        # No-op when the loop ended because close() was called
        self._terminate(reason)
        logger.info("Event stream reader has stopped.")

    def _terminate(self, reason: Optional[CloseReason]):
        """
        Ends the stream on behalf of the remote side: every listener registered
        now is notified once, then the stream becomes closed.
        """
        with self._lock:
            if self._closing:
                return
            self._closing = True
            listeners = list(self._listeners.values())

        logger.warning(f"Event stream {self._stream_id} terminated: {reason}")
        for listener in listeners:
            try:
                listener.event_stream_closed(reason)
            except Exception:
                logger.exception(f"Listener {listener!r} failed while handling stream closure")

        with self._lock:
            self._state = StreamState.CLOSED
        self._release()
        self._closed_event.set()

    def _release(self):
        try:
            self.source.close()
        except Exception as e:
            logger.error(f"Error while releasing the event source: {e}")
