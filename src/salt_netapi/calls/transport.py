"""
Transport boundary for salt-api requests.

The HTTP client, the login handshake and token/cookie storage live behind
the `Transport` protocol; the call pipeline only hands it a path and a
payload and gets the parsed JSON body back.
"""
from typing import Any, List, Mapping, Optional, Protocol

from salt_netapi.errors import ProtocolError


class Transport(Protocol):
    """Protocol for transports capable of posting a payload to the salt-api."""

    def post(self, path: str, payload: Mapping[str, Any], timeout: Optional[float] = None) -> Any:
        """
        Sends `payload` to `path` and returns the decoded JSON response body.
        Raises `TransportError` when the request cannot be completed.
        """


def unwrap_envelope(response: Any) -> List[Any]:
    """
    Returns the element list of a `{"return": [...]}` envelope.
    Any other shape means the service broke the protocol.
    """
    if not isinstance(response, Mapping) or "return" not in response:
        raise ProtocolError(f"Expected a {{'return': [...]}} envelope, got {type(response).__name__}")
    elements = response["return"]
    if not isinstance(elements, list):
        raise ProtocolError(f"Envelope 'return' field must be a list, got {type(elements).__name__}")
    return elements
