"""
Payment request validation and the JSON bodies sent to the facilitator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from solders.pubkey import Pubkey

from .config import DEFAULT_SUPPORTED_TOKENS, Network
from .errors import ValidationError

__all__ = [
    "PaymentRequest",
    "build_create_payload",
    "build_settle_payload",
    "build_verify_payload",
    "is_base58",
    "validate_payment_request",
    "validate_recipient",
]

_BASE58_ALPHABET = frozenset(
    "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
)


def is_base58(text: str) -> bool:
    return bool(text) and not set(text) - _BASE58_ALPHABET


def _to_amount(raw: Decimal | str | float | int) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError("amount", f"expected a number, got {raw!r}")
    if isinstance(raw, float):
        raw = repr(raw)
    try:
        return Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("amount", f"'{raw}' is not a valid decimal number") from None


@dataclass(frozen=True)
class PaymentRequest:
    """
    What the payer wants to pay: ``amount`` of ``token`` to ``recipient``.

    Use :meth:`build` to normalise loosely typed input; the instance itself is
    never mutated after construction.
    """

    amount: Decimal
    token: str
    recipient: str
    metadata: Optional[Mapping[str, str]] = None

    @classmethod
    def build(
        cls,
        amount: Decimal | str | float | int,
        token: str,
        recipient: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "PaymentRequest":
        frozen_metadata = None
        if metadata is not None:
            frozen_metadata = MappingProxyType(
                {str(key): str(value) for key, value in metadata.items()}
            )
        return cls(
            amount=_to_amount(amount),
            token=str(token).strip().upper(),
            recipient=str(recipient).strip(),
            metadata=frozen_metadata,
        )


def validate_recipient(recipient: str, *, strict: bool = False) -> None:
    """
    Reject recipients that cannot be Solana addresses.

    The default check is syntactic (non-empty base58). ``strict`` additionally
    requires the address to decode to a 32-byte public key.
    """
    if not isinstance(recipient, str) or not recipient:
        raise ValidationError("recipient", "must not be empty")
    if recipient != recipient.strip() or any(ch.isspace() for ch in recipient):
        raise ValidationError("recipient", "must not contain whitespace")
    invalid = sorted(set(recipient) - _BASE58_ALPHABET)
    if invalid:
        raise ValidationError(
            "recipient", f"contains non-base58 characters: {''.join(invalid)}"
        )
    if strict:
        try:
            Pubkey.from_string(recipient)
        except ValueError as exc:
            raise ValidationError(
                "recipient", f"'{recipient}' is not a valid Solana address"
            ) from exc


def validate_payment_request(
    request: PaymentRequest,
    *,
    supported_tokens: Iterable[str] = DEFAULT_SUPPORTED_TOKENS,
    strict_recipient: bool = False,
) -> None:
    """Raise :class:`ValidationError` naming the first offending field."""
    amount = request.amount
    if not isinstance(amount, Decimal):
        raise ValidationError("amount", f"expected a Decimal, got {type(amount).__name__}")
    if not amount.is_finite():
        raise ValidationError("amount", "must be a finite number")
    if amount <= 0:
        raise ValidationError("amount", "must be greater than zero")

    tokens = tuple(token.upper() for token in supported_tokens)
    if request.token not in tokens:
        raise ValidationError(
            "token",
            f"'{request.token}' is not supported; expected one of {', '.join(tokens)}",
        )

    validate_recipient(request.recipient, strict=strict_recipient)

    if request.metadata is not None:
        for key, value in request.metadata.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValidationError("metadata", "keys and values must be strings")


def build_create_payload(request: PaymentRequest, network: Network) -> Dict[str, Any]:
    """Build the body submitted to ``/payments/create``."""
    return {
        "amount": float(request.amount),
        "token": request.token,
        "recipient": request.recipient,
        "network": network.wire_name,
        "metadata": dict(request.metadata) if request.metadata is not None else None,
    }


def build_settle_payload(payment_id: str, signed_transaction: str) -> Dict[str, Any]:
    """Build the body submitted to ``/payments/settle``."""
    return {
        "payment_id": payment_id,
        "signed_transaction": signed_transaction,
    }


def build_verify_payload(signature: str, network: Network) -> Dict[str, Any]:
    """Build the body submitted to ``/payments/verify``."""
    return {
        "signature": signature,
        "network": network.wire_name,
    }
