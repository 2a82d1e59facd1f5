"""
Public, high-level helpers for interacting with the Qwery payment facilitator.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

import requests

from .core.client import PaymentClient
from .core.config import (
    ClientConfig,
    ClientParameters,
    Network,
    load_client_config,
)
from .core.errors import ConfigError
from .core.models import SettlementResult
from .core.payloads import PaymentRequest
from .core.signing import TransactionSigner

__all__ = [
    "ConfigError",
    "create_payment_client",
    "send_payment",
]


def _resolve_config(
    config: Optional[ClientConfig],
    *,
    env_file: Optional[str],
    overrides: Optional[Mapping[str, str]],
    base: Optional[Mapping[str, str]],
    parameters: Optional[ClientParameters],
    explicit: Mapping[str, Any],
) -> ClientConfig:
    if config is not None:
        extras = (overrides, base, parameters, *explicit.values())
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ClientConfig or individual parameters, not both."
            )
        return config
    return load_client_config(
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        **explicit,
    )


def create_payment_client(
    *,
    config: Optional[ClientConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ClientParameters] = None,
    network: Optional[Network | str] = None,
    facilitator_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout_seconds: Optional[float | str] = None,
    max_attempts: Optional[int | str] = None,
    supported_tokens: Optional[Tuple[str, ...] | str] = None,
    strict_recipient: Optional[bool | str] = None,
) -> PaymentClient:
    """
    Construct a :class:`PaymentClient`.

    Callers can either supply a ready-made :class:`ClientConfig` or let the
    helper assemble one from environment data.
    """
    cfg = _resolve_config(
        config,
        env_file=env_file,
        overrides=overrides,
        base=base,
        parameters=parameters,
        explicit={
            "network": network,
            "facilitator_url": facilitator_url,
            "api_key": api_key,
            "timeout_seconds": timeout_seconds,
            "max_attempts": max_attempts,
            "supported_tokens": supported_tokens,
            "strict_recipient": strict_recipient,
        },
    )
    return PaymentClient(cfg, session=session)


async def send_payment(
    *,
    amount: Decimal | str | float | int,
    token: str,
    recipient: str,
    signer: TransactionSigner,
    metadata: Optional[Mapping[str, Any]] = None,
    confirm: bool = False,
    config: Optional[ClientConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    network: Optional[Network | str] = None,
    facilitator_url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> SettlementResult:
    """
    High-level convenience wrapper that creates, signs and settles one payment.
    """
    client = create_payment_client(
        config=config,
        session=session,
        env_file=env_file,
        overrides=overrides,
        network=network,
        facilitator_url=facilitator_url,
        api_key=api_key,
    )
    async with client:
        request = PaymentRequest.build(amount, token, recipient, metadata)
        return await client.pay(request, signer, confirm=confirm)

