"""
Per-Minion Results and the Result Envelope Decoder.

The service does not tag failures: a minion that could not run a function
answers in the same slot a successful value would use, often with a plain
human readable string. This module is responsible for:
- Modelling the outcome of one minion as `Ok(value)` or `Err(SaltError)`.
- Decoding a raw fragment structurally against the expected return type.
- Classifying fragments that fail to decode, using an ordered list of
  first-match error rules evaluated against the raw (string) fragment.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, Mapping, Pattern, Tuple, TypeVar, Union

from pydantic import TypeAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


# --- Error values ---

@dataclass(frozen=True)
class SaltError:
    """Base class for the classified reasons a minion did not produce a value."""


@dataclass(frozen=True)
class FunctionNotAvailable(SaltError):
    """The minion does not know the called function."""
    function_name: str


@dataclass(frozen=True)
class ModuleNotSupported(SaltError):
    """The module exists but refused to load on the minion."""
    module_name: str


@dataclass(frozen=True)
class GenericError(SaltError):
    """Any other failure. Keeps the raw fragment verbatim for diagnostics."""
    payload: Any
    cause: BaseException


# --- The Result union ---

@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: SaltError


Result = Union[Ok[T], Err]


# --- Classification rules ---

@dataclass(frozen=True)
class ErrorRule:
    """Maps a message pattern (group 1 is the subject name) to an error value."""
    pattern: Pattern[str]
    factory: Callable[[str], SaltError]

    def apply(self, text: str) -> Union[SaltError, None]:
        match = self.pattern.search(text)
        if match is None:
            return None
        return self.factory(match.group(1))


FUNCTION_NOT_AVAILABLE = ErrorRule(re.compile(r"'([^']+)' is not available\."), FunctionNotAvailable)
MODULE_NOT_SUPPORTED = ErrorRule(re.compile(r"'([^']+)' __virtual__ returned False"), ModuleNotSupported)

# Order matters: the first matching rule wins.
DEFAULT_RULES: Tuple[ErrorRule, ...] = (FUNCTION_NOT_AVAILABLE, MODULE_NOT_SUPPORTED)


class ResultDecoder:
    """
    Turns raw per-minion fragments into `Result` values.

    Decoding is a two phase process: structural validation against the
    expected type first, then, only when that fails, classification of the
    raw fragment. `decode` never raises.
    """
    rules: Tuple[ErrorRule, ...]
    _adapters: Dict[Any, TypeAdapter]

    def __init__(self, rules: Iterable[ErrorRule] = DEFAULT_RULES):
        self.rules = tuple(rules)
        self._adapters = {}

    def with_rule(self, rule: ErrorRule) -> "ResultDecoder":
        """Returns a decoder that tries `rule` after all the existing ones."""
        return ResultDecoder(self.rules + (rule,))

    def decode(self, fragment: Any, return_type: Any = Any) -> Result:
        try:
            value = self._adapter(return_type).validate_python(fragment)
        except Exception as e:
            return Err(self.classify(fragment, e))
        return Ok(value)

    def decode_all(self, fragments: Mapping[str, Any], return_type: Any = Any) -> Dict[str, Result]:
        """Decodes a minion -> fragment mapping, keeping the minion ids as keys."""
        return {str(minion): self.decode(fragment, return_type) for minion, fragment in fragments.items()}

    def classify(self, fragment: Any, cause: BaseException) -> SaltError:
        """
        Picks the error value for a fragment that failed to decode.
        Only string fragments are matched against the rules.
        """
        if isinstance(fragment, str):
            for rule in self.rules:
                error = rule.apply(fragment)
                if error is not None:
                    return error
        logger.debug(f"Unclassified result fragment {fragment!r}: {cause}")
        return GenericError(payload=fragment, cause=cause)

    def _adapter(self, return_type: Any) -> TypeAdapter:
        try:
            adapter = self._adapters.get(return_type)
        except TypeError:
            # Unhashable type expressions are simply not cached
            return TypeAdapter(return_type)
        if adapter is None:
            adapter = TypeAdapter(return_type)
            self._adapters[return_type] = adapter
        return adapter
