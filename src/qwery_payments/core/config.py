"""
Configuration objects and helpers for the Qwery payment client.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

from .environment import build_environment
from .errors import ConfigError
from .transport import RetryPolicy

__all__ = [
    "ClientConfig",
    "ClientParameters",
    "DEFAULT_FACILITATOR_URLS",
    "DEFAULT_SUPPORTED_TOKENS",
    "Network",
    "load_client_config",
]


class Network(enum.Enum):
    """Solana cluster the facilitator settles on."""

    MAINNET = "solana"
    DEVNET = "solana-devnet"

    @property
    def wire_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: "Network | str") -> "Network":
        if isinstance(raw, cls):
            return raw
        key = str(raw).strip().lower()
        try:
            return _NETWORK_ALIASES[key]
        except KeyError:
            raise ConfigError(
                f"Unknown network '{raw}'; expected one of: mainnet, devnet"
            ) from None


_NETWORK_ALIASES = {
    "mainnet": Network.MAINNET,
    "mainnet-beta": Network.MAINNET,
    "solana": Network.MAINNET,
    "devnet": Network.DEVNET,
    "solana-devnet": Network.DEVNET,
}

DEFAULT_FACILITATOR_URLS: Mapping[Network, str] = {
    Network.MAINNET: "https://facilitator.qwery.xyz",
    Network.DEVNET: "https://facilitator.qwery.xyz",
}

DEFAULT_SUPPORTED_TOKENS: Tuple[str, ...] = ("SOL", "USDC", "USDT")

_PARAMETER_TO_ENV_KEY = {
    "network": "QWERY_NETWORK",
    "facilitator_url": "QWERY_FACILITATOR_URL",
    "api_key": "QWERY_API_KEY",
    "timeout_seconds": "QWERY_TIMEOUT_SECONDS",
    "max_attempts": "QWERY_MAX_ATTEMPTS",
    "backoff_base_seconds": "QWERY_BACKOFF_BASE_SECONDS",
    "backoff_max_seconds": "QWERY_BACKOFF_MAX_SECONDS",
    "backoff_jitter": "QWERY_BACKOFF_JITTER",
    "supported_tokens": "QWERY_SUPPORTED_TOKENS",
    "strict_recipient": "QWERY_STRICT_RECIPIENT",
    "poll_interval_seconds": "QWERY_POLL_INTERVAL_SECONDS",
    "confirm_timeout_seconds": "QWERY_CONFIRM_TIMEOUT_SECONDS",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Network):
        return value.wire_name
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(item) for item in value)
    return str(value)


@dataclass(frozen=True)
class ClientParameters:
    """
    Explicit parameter bundle for constructing :class:`ClientConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_client_config`.
    """

    network: Optional[Network | str] = None
    facilitator_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: Optional[float | str] = None
    max_attempts: Optional[int | str] = None
    backoff_base_seconds: Optional[float | str] = None
    backoff_max_seconds: Optional[float | str] = None
    backoff_jitter: Optional[float | str] = None
    supported_tokens: Optional[Tuple[str, ...] | str] = None
    strict_recipient: Optional[bool | str] = None
    poll_interval_seconds: Optional[float | str] = None
    confirm_timeout_seconds: Optional[float | str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = _stringify(value)
        return overrides


def _collect_parameter_overrides(
    parameters: Optional[ClientParameters],
    explicit: Mapping[str, Any],
) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    if parameters is not None:
        overrides.update(parameters.as_overrides())

    for key, value in explicit.items():
        if value is None:
            continue
        try:
            env_key = _PARAMETER_TO_ENV_KEY[key]
        except KeyError as exc:
            raise TypeError(f"Unknown client parameter '{key}'") from exc
        overrides[env_key] = _stringify(value)
    return overrides


def _normalize_url(raw_url: str, field_name: str) -> str:
    value = raw_url.strip().rstrip("/")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"{field_name} must be an http(s) URL, got '{raw_url}'")
    return value


def _parse_float(values: Mapping[str, str], key: str, default: float) -> float:
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got '{raw}'") from exc
    if parsed < 0:
        raise ConfigError(f"{key} must not be negative")
    return parsed


def _parse_int(values: Mapping[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from exc


def _parse_bool(values: Mapping[str, str], key: str, default: bool) -> bool:
    raw = values.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{raw}'")


def _parse_tokens(raw: Optional[str]) -> Tuple[str, ...]:
    if raw is None:
        return DEFAULT_SUPPORTED_TOKENS
    tokens = tuple(
        dict.fromkeys(item.strip().upper() for item in raw.split(",") if item.strip())
    )
    if not tokens:
        raise ConfigError("QWERY_SUPPORTED_TOKENS must list at least one token")
    return tokens


@dataclass(frozen=True)
class ClientConfig:
    network: Network = Network.MAINNET
    facilitator_url: str = DEFAULT_FACILITATOR_URLS[Network.MAINNET]
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    supported_tokens: Tuple[str, ...] = DEFAULT_SUPPORTED_TOKENS
    strict_recipient: bool = False
    poll_interval_seconds: float = 2.0
    confirm_timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        if not isinstance(self.network, Network):
            raise ConfigError(f"Unknown network '{self.network}'")
        object.__setattr__(
            self,
            "facilitator_url",
            _normalize_url(self.facilitator_url, "facilitator_url"),
        )
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be greater than zero")
        if not self.supported_tokens:
            raise ConfigError("supported_tokens must not be empty")

    @classmethod
    def for_network(cls, network: Network | str, **kwargs: Any) -> "ClientConfig":
        """
        Build a configuration pointing at the default facilitator for ``network``.
        """
        resolved = Network.parse(network)
        kwargs.setdefault("facilitator_url", DEFAULT_FACILITATOR_URLS[resolved])
        return cls(network=resolved, **kwargs)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ClientConfig":
        network = Network.parse(values.get("QWERY_NETWORK", Network.MAINNET.wire_name))

        facilitator_url = values.get("QWERY_FACILITATOR_URL") or DEFAULT_FACILITATOR_URLS[
            network
        ]
        api_key = (values.get("QWERY_API_KEY") or "").strip() or None

        retry_policy = RetryPolicy(
            max_attempts=_parse_int(values, "QWERY_MAX_ATTEMPTS", 3),
            base_delay=_parse_float(values, "QWERY_BACKOFF_BASE_SECONDS", 0.5),
            max_delay=_parse_float(values, "QWERY_BACKOFF_MAX_SECONDS", 8.0),
            jitter=_parse_float(values, "QWERY_BACKOFF_JITTER", 0.1),
        )

        return cls(
            network=network,
            facilitator_url=facilitator_url,
            api_key=api_key,
            timeout_seconds=_parse_float(values, "QWERY_TIMEOUT_SECONDS", 30.0),
            retry_policy=retry_policy,
            supported_tokens=_parse_tokens(values.get("QWERY_SUPPORTED_TOKENS")),
            strict_recipient=_parse_bool(values, "QWERY_STRICT_RECIPIENT", False),
            poll_interval_seconds=_parse_float(
                values, "QWERY_POLL_INTERVAL_SECONDS", 2.0
            ),
            confirm_timeout_seconds=_parse_float(
                values, "QWERY_CONFIRM_TIMEOUT_SECONDS", 60.0
            ),
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        parameters: Optional[ClientParameters] = None,
        **explicit: Any,
    ) -> "ClientConfig":
        parameter_overrides = _collect_parameter_overrides(parameters, explicit)
        merged_overrides = dict(overrides or {})
        merged_overrides.update(parameter_overrides)

        environment = build_environment(
            env_file=env_file,
            base=base,
            overrides=merged_overrides,
        )
        return cls.from_mapping(environment.variables)


def load_client_config(
    *,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ClientParameters] = None,
    network: Optional[Network | str] = None,
    facilitator_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout_seconds: Optional[float | str] = None,
    max_attempts: Optional[int | str] = None,
    backoff_base_seconds: Optional[float | str] = None,
    backoff_max_seconds: Optional[float | str] = None,
    backoff_jitter: Optional[float | str] = None,
    supported_tokens: Optional[Tuple[str, ...] | str] = None,
    strict_recipient: Optional[bool | str] = None,
    poll_interval_seconds: Optional[float | str] = None,
    confirm_timeout_seconds: Optional[float | str] = None,
) -> ClientConfig:
    """
    Convenience wrapper that mirrors :meth:`ClientConfig.from_env`.

    The configuration can be provided entirely through environment variables,
    a ``.env`` file, direct keyword arguments, or any combination of the three.
    Keyword arguments win over ``overrides``, which win over the environment.
    """
    return ClientConfig.from_env(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        network=network,
        facilitator_url=facilitator_url,
        api_key=api_key,
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        backoff_base_seconds=backoff_base_seconds,
        backoff_max_seconds=backoff_max_seconds,
        backoff_jitter=backoff_jitter,
        supported_tokens=supported_tokens,
        strict_recipient=strict_recipient,
        poll_interval_seconds=poll_interval_seconds,
        confirm_timeout_seconds=confirm_timeout_seconds,
    )
