"""
Exception hierarchy raised by the Qwery payment client.

Every error derives from :class:`QweryError` and exposes ``retryable`` so
callers can tell transient failures from terminal ones without matching on
concrete types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import SettlementResult

__all__ = [
    "AlreadySettledError",
    "ConfigError",
    "ConfirmationTimeoutError",
    "FacilitatorError",
    "LifecycleError",
    "NetworkError",
    "QweryError",
    "RequestFailedError",
    "RetriesExhaustedError",
    "SettlementInProgressError",
    "SigningError",
    "UnknownPaymentError",
    "ValidationError",
]


class QweryError(Exception):
    """Base class for all client errors."""

    retryable = False


class ConfigError(QweryError):
    """Raised when the supplied configuration is invalid."""


class ValidationError(QweryError):
    """A payment request or payment failed local, pre-flight validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NetworkError(QweryError):
    """A transient transport failure (connection reset, timeout, 5xx)."""

    retryable = True


class RequestFailedError(QweryError):
    """The request could not be sent at all (invalid URL, bad headers, TLS setup)."""


class RetriesExhaustedError(NetworkError):
    """Every attempt allowed by the retry policy failed transiently."""

    def __init__(
        self,
        url: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Giving up on {url} after {attempts} attempt(s): {last_error}"
        )
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class FacilitatorError(QweryError):
    """The facilitator rejected the request or sent an unusable reply."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else (
            str(status_code) if status_code is not None else None
        )
        self.status_code = status_code

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code is not None and self.status_code >= 500

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"[{self.code}] {self.message}"


class SigningError(QweryError):
    """The external signer could not sign the facilitator's transaction."""


class LifecycleError(QweryError):
    """A payment was used out of order within its lifecycle."""

    def __init__(self, payment_id: str, message: str) -> None:
        super().__init__(message)
        self.payment_id = payment_id


class AlreadySettledError(LifecycleError):
    """A settlement result has already been recorded for the payment."""

    def __init__(self, payment_id: str, result: "SettlementResult") -> None:
        super().__init__(
            payment_id, f"Payment {payment_id} already has a settlement result"
        )
        self.result = result


class SettlementInProgressError(LifecycleError):
    """Another settlement attempt for the payment has not finished yet."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(
            payment_id, f"Settlement of payment {payment_id} is already in progress"
        )


class UnknownPaymentError(LifecycleError):
    """The payment was not created by this client."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(
            payment_id, f"Payment {payment_id} was not created by this client"
        )


class ConfirmationTimeoutError(QweryError):
    """Polling stopped before the payment reached a final status."""

    retryable = True

    def __init__(self, signature: str, timeout: float, last_status: str) -> None:
        super().__init__(
            f"Transaction {signature} still '{last_status}' after {timeout:g}s"
        )
        self.signature = signature
        self.timeout = timeout
        self.last_status = last_status
