"""
Value objects decoded from facilitator responses.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .config import Network
from .errors import ConfigError, FacilitatorError

__all__ = [
    "HealthStatus",
    "Payment",
    "PaymentStatus",
    "SettlementResult",
    "VerificationResult",
]


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise FacilitatorError(
            f"Facilitator response is missing '{key}': {dict(payload)}",
            code="invalid_response",
        )
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _wire_network(reported: Optional[str], default: str) -> str:
    if reported is None:
        return default
    try:
        return Network.parse(reported).wire_name
    except ConfigError:
        return reported


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SETTLED = "settled"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    FAILED = "failed"
    EXPIRED = "expired"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "PaymentStatus":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN

    @property
    def is_final(self) -> bool:
        return self in _FINAL_STATUSES


_FINAL_STATUSES = frozenset(
    {
        PaymentStatus.SETTLED,
        PaymentStatus.CONFIRMED,
        PaymentStatus.FINALIZED,
        PaymentStatus.FAILED,
        PaymentStatus.EXPIRED,
    }
)


@dataclass(frozen=True)
class Payment:
    """
    A payment created by the facilitator.

    ``transaction`` is the base64-encoded unsigned transaction the payer has
    to sign before settlement.
    """

    payment_id: str
    transaction: str
    network: str
    status: str = PaymentStatus.PENDING.value
    amount: Optional[Decimal] = None
    token: Optional[str] = None
    recipient: Optional[str] = None
    expires_at: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(
        cls, payload: Dict[str, Any], *, network: str
    ) -> "Payment":
        return cls(
            payment_id=_require_str(payload, "payment_id"),
            transaction=_require_str(payload, "transaction"),
            network=_wire_network(_optional_str(payload.get("network")), network),
            status=_optional_str(payload.get("status")) or PaymentStatus.PENDING.value,
            amount=_to_decimal(payload.get("amount")),
            token=_optional_str(payload.get("token")),
            recipient=_optional_str(payload.get("recipient")),
            expires_at=_optional_str(payload.get("expires_at")),
            raw=MappingProxyType(dict(payload)),
        )


@dataclass(frozen=True)
class SettlementResult:
    success: bool
    payment_id: str
    signature: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(
        cls, payload: Dict[str, Any], *, payment_id: str
    ) -> "SettlementResult":
        success = payload.get("success") is True
        signature = _optional_str(payload.get("signature"))
        if success and signature is None:
            raise FacilitatorError(
                f"Facilitator reported success for payment {payment_id} "
                "without a transaction signature",
                code="missing_signature",
            )
        error = _optional_str(payload.get("error"))
        if not success and error is None:
            error = "Facilitator did not report a reason"
        return cls(
            success=success,
            payment_id=payment_id,
            signature=signature,
            status=_optional_str(payload.get("status")),
            error=error,
            raw=MappingProxyType(dict(payload)),
        )


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    status: PaymentStatus
    signature: str
    confirmations: Optional[int] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(
        cls, payload: Dict[str, Any], *, signature: str
    ) -> "VerificationResult":
        confirmations = payload.get("confirmations")
        return cls(
            verified=payload.get("verified") is True,
            status=PaymentStatus(payload.get("status") or PaymentStatus.UNKNOWN.value),
            signature=signature,
            confirmations=int(confirmations) if confirmations is not None else None,
            raw=MappingProxyType(dict(payload)),
        )


@dataclass(frozen=True)
class HealthStatus:
    status: str
    version: Optional[str] = None
    networks: Mapping[str, str] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def healthy(self) -> bool:
        return self.status.lower() in ("ok", "healthy")

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "HealthStatus":
        networks = payload.get("networks") or {}
        return cls(
            status=_require_str(payload, "status"),
            version=_optional_str(payload.get("version")),
            networks=MappingProxyType(
                {str(key): str(value) for key, value in dict(networks).items()}
            ),
            raw=MappingProxyType(dict(payload)),
        )
