"""
Client facade for the salt-api.

This module is responsible for:
- Configuring process-wide logging.
- Wiring a transport into a `Dispatcher` according to the `ClientConfig`.
- Choosing between token and inline-credential authentication per call.
- Opening event streams on an `EventSource` and attaching listeners.
"""
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from salt_netapi.calls.dispatcher import Dispatcher
from salt_netapi.calls.models import AsyncHandle, Credentials, LocalCall, Target
from salt_netapi.calls.results import Result, ResultDecoder
from salt_netapi.calls.transport import Transport
from salt_netapi.config_loader import ClientConfig
from salt_netapi.errors import StreamError
from salt_netapi.events.models import EventListener
from salt_netapi.events.source import EventSource
from salt_netapi.events.stream import EventStream


def setup_logging(level: Union[str, int] = logging.INFO):
    """
    Configures the global logging settings for applications using the client.
    This should be called as early as possible during startup.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)-8s] %(name)s.%(funcName)s: %(message)s'
    )


logger = logging.getLogger(__name__)


class SaltClient:
    config: ClientConfig
    transport: Transport
    source: Optional[EventSource]
    dispatcher: Dispatcher

    """
    Entry point for calling execution modules and listening to events.
    Credentials from the config are used for every call unless a call passes
    its own; without any, the transport's session token is relied upon.
    """
    def __init__(self, config: ClientConfig, transport: Transport, source: Optional[EventSource] = None,
                 decoder: Optional[ResultDecoder] = None):
        self.config = config
        self.transport = transport
        self.source = source
        self.dispatcher = Dispatcher(
            transport,
            decoder=decoder,
            timeout=config.timeout,
            poll_interval=config.poll_interval,
        )

    @classmethod
    def from_file(cls, config_path: Union[str, Path], transport: Transport,
                  source: Optional[EventSource] = None) -> "SaltClient":
        config = ClientConfig.from_file(config_path)
        setup_logging(config.log_level)
        logger.info(f"salt-api client configured for {config.url}")
        return cls(config, transport, source)

    def call_async(self, call: LocalCall, target: Target,
                   credentials: Optional[Credentials] = None) -> AsyncHandle:
        return self.dispatcher.dispatch_async(call, target, self._credentials(credentials))

    def call_sync(self, call: LocalCall, target: Target, credentials: Optional[Credentials] = None,
                  timeout: Optional[float] = None) -> Dict[str, Result]:
        return self.dispatcher.dispatch_sync(call, target, self._credentials(credentials), timeout)

    def lookup(self, handle: AsyncHandle, credentials: Optional[Credentials] = None) -> Dict[str, Result]:
        return self.dispatcher.lookup(handle, self._credentials(credentials))

    def wait(self, handle: AsyncHandle, credentials: Optional[Credentials] = None,
             timeout: Optional[float] = None) -> Dict[str, Result]:
        """Blocks until the minions of a `call_async` job answered or `timeout` passed."""
        return self.dispatcher.wait(handle, self._credentials(credentials), timeout)

    def events(self, *listeners: EventListener) -> EventStream:
        """
        Opens an event stream on the configured source with `listeners`
        already attached, so none of them misses the first events.
        """
        if self.source is None:
            raise StreamError("No event source configured for this client")
        stream = EventStream(self.source)
        for listener in listeners:
            stream.add_listener(listener)
        stream.open(self.config.events)
        return stream

    def _credentials(self, credentials: Optional[Credentials]) -> Optional[Credentials]:
        return credentials if credentials is not None else self.config.credentials
