"""
Data Models for salt-api Calls.

Defines the request side of the call pipeline:
- `LocalCall`, the immutable description of one execution module call.
- `Target` and `TargetType`, the opaque (value, expr_form) addressing pair.
- `Credentials` and `AuthModule` for the inline authentication mode.
- `AsyncHandle`, the job registration returned by an asynchronous submission.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

R = TypeVar("R")


class TargetType(str, Enum):
    """Addressing schemes understood by the master (the `expr_form` values)."""
    GLOB = "glob"
    PCRE = "pcre"
    LIST = "list"
    GRAIN = "grain"
    GRAIN_PCRE = "grain_pcre"
    PILLAR = "pillar"
    PILLAR_PCRE = "pillar_pcre"
    NODEGROUP = "nodegroup"
    RANGE = "range"
    COMPOUND = "compound"
    IPCIDR = "ipcidr"


class AuthModule(str, Enum):
    """External authentication (eauth) backends."""
    AUTO = "auto"
    PAM = "pam"
    LDAP = "ldap"
    FILE = "file"
    SHAREDSECRET = "sharedsecret"
    DJANGO = "django"
    MYSQL = "mysql"
    REST = "rest"


class ClientType(str, Enum):
    """The salt-api `client` selector sent with every request."""
    LOCAL = "local"
    LOCAL_ASYNC = "local_async"
    RUNNER = "runner"


@dataclass(frozen=True)
class LocalCall(Generic[R]):
    """
    One call of a salt execution module function, e.g. `cmd.run`.

    `return_type` is never sent over the wire; it tells the result decoder
    what each minion is expected to answer with.
    """
    fun: str
    arg: Optional[Sequence[Any]] = None
    kwarg: Optional[Mapping[str, Any]] = None
    return_type: Any = Any

    def __post_init__(self):
        if not self.fun:
            raise ValueError("A call needs a function name, e.g. 'test.ping'")
        # Freeze the argument containers so the descriptor cannot change after construction
        if self.arg is not None:
            object.__setattr__(self, "arg", tuple(self.arg))
        if self.kwarg is not None:
            object.__setattr__(self, "kwarg", MappingProxyType(dict(self.kwarg)))

    def payload(self) -> Dict[str, Any]:
        """
        Projects the call onto the wire payload.
        `arg` and `kwarg` are only emitted when they were given.
        """
        payload: Dict[str, Any] = {"fun": self.fun}
        if self.arg is not None:
            payload["arg"] = list(self.arg)
        if self.kwarg is not None:
            payload["kwarg"] = dict(self.kwarg)
        return payload


@dataclass(frozen=True)
class Target:
    """Opaque addressing pair; what the value means is up to the master."""
    value: Union[str, Tuple[str, ...]]
    type: TargetType = TargetType.GLOB

    def __post_init__(self):
        if isinstance(self.value, list):
            object.__setattr__(self, "value", tuple(self.value))

    @classmethod
    def glob(cls, pattern: str) -> "Target":
        return cls(pattern, TargetType.GLOB)

    @classmethod
    def minion_list(cls, *minions: str) -> "Target":
        return cls(tuple(minions), TargetType.LIST)

    @classmethod
    def ipcidr(cls, cidr: str) -> "Target":
        return cls(cidr, TargetType.IPCIDR)

    @classmethod
    def compound(cls, expression: str) -> "Target":
        return cls(expression, TargetType.COMPOUND)

    def payload(self) -> Dict[str, Any]:
        value: Union[str, List[str]] = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"tgt": value, "expr_form": self.type.value}


@dataclass(frozen=True)
class Credentials:
    """Credentials sent with each request when no session token is used."""
    username: str
    password: str = field(repr=False)
    eauth: AuthModule = AuthModule.AUTO

    def payload(self) -> Dict[str, str]:
        return {
            "username": self.username,
            "password": self.password,
            "eauth": AuthModule(self.eauth).value,
        }


@dataclass(frozen=True)
class AsyncHandle(Generic[R]):
    """
    Job registration returned by an asynchronous submission.
    Holds no result; resolve it with `Dispatcher.lookup` or `Dispatcher.wait`.
    """
    jid: Optional[str]
    minions: Tuple[str, ...] = ()
    return_type: Any = Any

    @property
    def matched(self) -> bool:
        """False when the target did not match any minion, so there is no job to wait for."""
        return self.jid is not None

    @classmethod
    def from_submission(cls, element: Mapping[str, Any], return_type: Any = Any) -> "AsyncHandle":
        jid = element.get("jid")
        minions = element.get("minions") or []
        return cls(
            jid=str(jid) if jid is not None else None,
            minions=tuple(str(minion) for minion in minions),
            return_type=return_type,
        )
