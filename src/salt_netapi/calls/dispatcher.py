"""
Call Dispatcher.

This module is responsible for:
- Attaching the target, the client selector and (optionally) inline
  credentials to a call payload.
- Choosing the submission endpoint for the authentication mode in use.
- Submitting calls asynchronously and turning the job registration into an
  `AsyncHandle`.
- Polling submitted jobs and decoding each minion's answer into a `Result`.

Synchronous dispatch is built on top of the asynchronous primitive
(submit, then poll until every targeted minion answered or the timeout
elapsed), so timeout policy lives in `Dispatcher.wait` only.
"""
import logging
import time
from typing import Any, Dict, Mapping, Optional

from salt_netapi.calls.models import AsyncHandle, ClientType, Credentials, LocalCall, Target
from salt_netapi.calls.results import Result, ResultDecoder
from salt_netapi.calls.transport import Transport, unwrap_envelope
from salt_netapi.errors import ProtocolError

logger = logging.getLogger(__name__)

# Endpoint used when the transport already holds a session token
TOKEN_PATH = "/"
# Endpoint used when credentials travel with every request
INLINE_AUTH_PATH = "/run"

LOOKUP_FUNCTION = "jobs.lookup_jid"

# Smallest request timeout (seconds) for a lookup made right at the deadline
MIN_LOOKUP_TIMEOUT = 0.1


class Dispatcher:
    transport: Transport
    decoder: ResultDecoder
    timeout: float
    poll_interval: float

    """
    Sends calls through a transport and decodes the per-minion answers.
    Holds no per-call state, so one instance can serve concurrent callers.
    """
    def __init__(self, transport: Transport, decoder: Optional[ResultDecoder] = None,
                 timeout: float = 0.0, poll_interval: float = 1.0):
        if timeout < 0:
            raise ValueError("timeout must be >= 0 (0 waits forever)")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self.transport = transport
        self.decoder = decoder or ResultDecoder()
        self.timeout = timeout
        self.poll_interval = poll_interval

    def dispatch_async(self, call: LocalCall, target: Target,
                       credentials: Optional[Credentials] = None) -> AsyncHandle:
        """
        Submits `call` for `target` without waiting for the minions.
        Returns the job handle built from the single registration element.
        """
        payload = {"client": ClientType.LOCAL_ASYNC.value, **call.payload(), **target.payload()}
        elements = self._post(payload, credentials)
        if not elements:
            raise ProtocolError(f"Submission of '{call.fun}' returned no job registration")

        registration = elements[0]
        if not isinstance(registration, Mapping):
            raise ProtocolError(f"Job registration must be an object, got {type(registration).__name__}")

        handle = AsyncHandle.from_submission(registration, call.return_type)
        if handle.matched:
            logger.info(f"Submitted '{call.fun}' as job {handle.jid} to {len(handle.minions)} minion(s)")
        else:
            logger.warning(f"Target {target.value!r} ({target.type.value}) matched no minions for '{call.fun}'")
        return handle

    def lookup(self, handle: AsyncHandle, credentials: Optional[Credentials] = None,
               timeout: Optional[float] = None) -> Dict[str, Result]:
        """
        Polls a job once. Only minions that already answered appear as keys.
        """
        if not handle.matched:
            return {}

        payload = {"client": ClientType.RUNNER.value, "fun": LOOKUP_FUNCTION, "jid": handle.jid}
        elements = self._post(payload, credentials, timeout)
        if not elements:
            raise ProtocolError(f"Lookup of job {handle.jid} returned an empty envelope")

        returns = elements[0]
        if not isinstance(returns, Mapping):
            raise ProtocolError(f"Job {handle.jid} returns must be an object, got {type(returns).__name__}")
        return self.decoder.decode_all(returns, handle.return_type)

    def wait(self, handle: AsyncHandle, credentials: Optional[Credentials] = None,
             timeout: Optional[float] = None) -> Dict[str, Result]:
        """
        Polls a job until every targeted minion answered or `timeout` seconds
        passed (defaults to the dispatcher timeout; 0 waits forever).
        Minions that did not answer in time are absent from the mapping.
        """
        if not handle.matched:
            return {}

        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout if timeout > 0 else None
        expected = set(handle.minions)

        results: Optional[Dict[str, Result]] = None
        while True:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0 and results is not None:
                    return self._timed_out(handle, expected, results, timeout)
                # A lookup never runs unbounded while a deadline is set
                remaining = max(remaining, MIN_LOOKUP_TIMEOUT)

            results = self.lookup(handle, credentials, timeout=remaining)
            if expected.issubset(results):
                return results

            if deadline is not None and time.monotonic() >= deadline:
                return self._timed_out(handle, expected, results, timeout)

            pause = self.poll_interval
            if deadline is not None:
                pause = min(pause, max(deadline - time.monotonic(), 0.0))
            time.sleep(pause)

    def dispatch_sync(self, call: LocalCall, target: Target, credentials: Optional[Credentials] = None,
                      timeout: Optional[float] = None) -> Dict[str, Result]:
        """
        Submits `call` and blocks until the targeted minions answered.
        Returns a minion id -> `Result` mapping.
        """
        handle = self.dispatch_async(call, target, credentials)
        return self.wait(handle, credentials, timeout)

    def _timed_out(self, handle: AsyncHandle, expected: set, results: Dict[str, Result],
                   timeout: float) -> Dict[str, Result]:
        missing = sorted(expected.difference(results))
        logger.info(f"Job {handle.jid} timed out after {timeout}s; no answer from {missing}")
        return results

    def _post(self, payload: Dict[str, Any], credentials: Optional[Credentials],
              timeout: Optional[float] = None) -> list:
        path = TOKEN_PATH
        if credentials is not None:
            payload = {**payload, **credentials.payload()}
            path = INLINE_AUTH_PATH

        logger.debug(f"POST {path} {_redacted(payload)}")
        response = self.transport.post(path, payload, timeout=timeout)
        return unwrap_envelope(response)


def _redacted(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: ("******" if key == "password" else value) for key, value in payload.items()}
