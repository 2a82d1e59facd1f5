"""
Public facade for the Qwery x402 payment client.

The module re-exports the most useful pieces for integrators so they can
``from qwery_payments import ...`` without navigating the package.
"""

from .api import create_payment_client, send_payment
from .core import (
    AlreadySettledError,
    ClientConfig,
    ClientParameters,
    ConfigError,
    ConfirmationTimeoutError,
    FacilitatorError,
    HealthStatus,
    KeypairSigner,
    LifecycleError,
    Network,
    NetworkError,
    Payment,
    PaymentClient,
    PaymentRequest,
    PaymentStatus,
    QweryError,
    RequestFailedError,
    RetriesExhaustedError,
    RetryPolicy,
    SettlementInProgressError,
    SettlementResult,
    SettlementState,
    SigningError,
    TransactionSigner,
    UnknownPaymentError,
    ValidationError,
    VerificationResult,
    build_environment,
    load_client_config,
    load_env_file,
)

__version__ = "0.1.0"

__all__ = (
    "AlreadySettledError",
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "ConfirmationTimeoutError",
    "FacilitatorError",
    "HealthStatus",
    "KeypairSigner",
    "LifecycleError",
    "Network",
    "NetworkError",
    "Payment",
    "PaymentClient",
    "PaymentRequest",
    "PaymentStatus",
    "QweryError",
    "RequestFailedError",
    "RetriesExhaustedError",
    "RetryPolicy",
    "SettlementInProgressError",
    "SettlementResult",
    "SettlementState",
    "SigningError",
    "TransactionSigner",
    "UnknownPaymentError",
    "ValidationError",
    "VerificationResult",
    "build_environment",
    "create_payment_client",
    "load_client_config",
    "load_env_file",
    "send_payment",
)
