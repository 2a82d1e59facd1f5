"""
Core primitives that implement the Qwery payment lifecycle.
"""

from .client import PaymentClient
from .config import (
    DEFAULT_FACILITATOR_URLS,
    DEFAULT_SUPPORTED_TOKENS,
    ClientConfig,
    ClientParameters,
    Network,
    load_client_config,
)
from .environment import ClientEnvironment, build_environment, load_env_file
from .errors import (
    AlreadySettledError,
    ConfigError,
    ConfirmationTimeoutError,
    FacilitatorError,
    LifecycleError,
    NetworkError,
    QweryError,
    RequestFailedError,
    RetriesExhaustedError,
    SettlementInProgressError,
    SigningError,
    UnknownPaymentError,
    ValidationError,
)
from .models import (
    HealthStatus,
    Payment,
    PaymentStatus,
    SettlementResult,
    VerificationResult,
)
from .payloads import (
    PaymentRequest,
    build_create_payload,
    build_settle_payload,
    build_verify_payload,
    validate_payment_request,
    validate_recipient,
)
from .signing import (
    KeypairSigner,
    SettlementCoordinator,
    SettlementState,
    TransactionSigner,
)
from .status import StatusReporter
from .transport import RetryPolicy, Transport

__all__ = [
    "AlreadySettledError",
    "ClientConfig",
    "ClientEnvironment",
    "ClientParameters",
    "ConfigError",
    "ConfirmationTimeoutError",
    "DEFAULT_FACILITATOR_URLS",
    "DEFAULT_SUPPORTED_TOKENS",
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
    "SettlementCoordinator",
    "SettlementInProgressError",
    "SettlementResult",
    "SettlementState",
    "SigningError",
    "StatusReporter",
    "TransactionSigner",
    "Transport",
    "UnknownPaymentError",
    "ValidationError",
    "VerificationResult",
    "build_create_payload",
    "build_environment",
    "build_settle_payload",
    "build_verify_payload",
    "load_client_config",
    "load_env_file",
    "validate_payment_request",
    "validate_recipient",
]
