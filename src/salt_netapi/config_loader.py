"""
Configuration Loader.

Responsible for reading the client's config.yaml file and turning it into
a validated `ClientConfig`.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from salt_netapi.calls.models import AuthModule, Credentials
from salt_netapi.errors import ConfigError
from salt_netapi.events.source import EventStreamConfig

logger = logging.getLogger(__name__)


def load_config(config_path: Union[str, Path] = "config.yaml") -> Dict[str, Any]:
    """
    Loads the YAML configuration file.
    """
    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Config file not found at {path}. Using defaults.")
        return {}

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {path}")
    except Exception as e:
        logger.error(f"Failed to parse config file: {e}")
        raise

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(config).__name__}")
    return config


@dataclass(frozen=True)
class ClientConfig:
    """Settings for `SaltClient`, built from the sections of config.yaml."""
    # Informational: the base URL a transport is built for; SaltClient only logs it
    url: str = "http://localhost:8000"
    # seconds a synchronous call waits for its minions; 0 waits forever
    timeout: float = 0.0
    poll_interval: float = 1.0
    credentials: Optional[Credentials] = None
    events: EventStreamConfig = EventStreamConfig()
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ClientConfig":
        api_conf = _section(config, 'api')
        auth_conf = _section(config, 'auth')
        events_conf = _section(config, 'events')
        logging_conf = _section(config, 'logging')

        credentials = None
        if auth_conf:
            username = auth_conf.get('username')
            password = auth_conf.get('password')
            if not username or password is None:
                raise ConfigError("The 'auth' section needs both 'username' and 'password'")
            credentials = Credentials(
                username=str(username),
                password=str(password),
                eauth=_enum(AuthModule, auth_conf.get('eauth', 'auto'), 'auth.eauth'),
            )

        events = EventStreamConfig(
            url=str(events_conf.get('url', EventStreamConfig.url)),
            token=events_conf.get('token'),
            connect_timeout=_number(events_conf.get('connect_timeout', 10.0), 'events.connect_timeout'),
            idle_timeout=_number(events_conf.get('idle_timeout', 0.0), 'events.idle_timeout'),
        )

        poll_interval = _number(api_conf.get('poll_interval', 1.0), 'api.poll_interval')
        if poll_interval == 0:
            raise ConfigError("api.poll_interval must be greater than 0")

        return cls(
            url=str(api_conf.get('url', cls.url)),
            timeout=_number(api_conf.get('timeout', 0.0), 'api.timeout'),
            poll_interval=poll_interval,
            credentials=credentials,
            events=events,
            log_level=str(logging_conf.get('level', 'INFO')).upper(),
        )

    @classmethod
    def from_file(cls, config_path: Union[str, Path] = "config.yaml") -> "ClientConfig":
        return cls.from_dict(load_config(config_path))


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def _number(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{name} must be >= 0, got {number}")
    return number


def _enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"{name} must be one of {choices}, got {value!r}") from None
