"""
Client facade for the Qwery facilitator payment lifecycle.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional

import requests

from .config import ClientConfig, Network
from .errors import ValidationError
from .models import HealthStatus, Payment, SettlementResult, VerificationResult
from .payloads import PaymentRequest, build_create_payload, validate_payment_request
from .signing import SettlementCoordinator, SettlementState, TransactionSigner
from .status import StatusReporter
from .transport import Transport

__all__ = [
    "PaymentClient",
]


class PaymentClient:
    """
    Drives create -> sign -> settle -> verify against one facilitator.

    A single instance can run many payment lifecycles concurrently. Settlement
    of any given ``payment_id`` happens at most once per client.

    Example:
        ```python
        async with PaymentClient.for_network("devnet") as client:
            payment = await client.create_payment(
                amount="0.01", token="SOL", recipient=recipient
            )
            result = await client.sign_and_settle(payment, signer)
        ```
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self.config = config
        self.transport = Transport(
            config.facilitator_url,
            session=session,
            timeout=config.timeout_seconds,
            retry_policy=config.retry_policy,
            api_key=config.api_key,
            sleep=sleep,
        )
        self.coordinator = SettlementCoordinator(self.transport, config.network)
        self.status = StatusReporter(self.transport, config.network, sleep=sleep)

    @classmethod
    def for_network(
        cls,
        network: Network | str,
        *,
        session: Optional[requests.Session] = None,
        **config_kwargs: Any,
    ) -> "PaymentClient":
        """
        Build a client for the default facilitator of ``network``.

        Raises :class:`ConfigError` for unknown networks or malformed URLs.
        """
        return cls(ClientConfig.for_network(network, **config_kwargs), session=session)

    @property
    def network(self) -> Network:
        return self.config.network

    @property
    def session(self) -> requests.Session:
        return self.transport.session

    def _coerce_request(
        self,
        request: Optional[PaymentRequest],
        fields: Mapping[str, Any],
    ) -> PaymentRequest:
        if request is not None:
            if fields:
                raise TypeError(
                    "Provide either a PaymentRequest or individual fields, not both."
                )
            return request
        missing = [name for name in ("amount", "token", "recipient") if name not in fields]
        if missing:
            raise ValidationError(missing[0], "is required")
        return PaymentRequest.build(**fields)

    async def create_payment(
        self,
        request: Optional[PaymentRequest] = None,
        *,
        amount: Optional[Decimal | str | float | int] = None,
        token: Optional[str] = None,
        recipient: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Payment:
        """
        Validate ``request`` locally, then ask the facilitator for a payment.

        Invalid requests raise :class:`ValidationError` without touching the
        network.
        """
        fields = {
            key: value
            for key, value in (
                ("amount", amount),
                ("token", token),
                ("recipient", recipient),
                ("metadata", metadata),
            )
            if value is not None
        }
        payment_request = self._coerce_request(request, fields)
        validate_payment_request(
            payment_request,
            supported_tokens=self.config.supported_tokens,
            strict_recipient=self.config.strict_recipient,
        )

        logging.info(
            "Creating payment of %s %s to %s on %s",
            payment_request.amount,
            payment_request.token,
            payment_request.recipient,
            self.network.wire_name,
        )
        response = await self.transport.post(
            "/payments/create", build_create_payload(payment_request, self.network)
        )
        payment = Payment.from_response(response, network=self.network.wire_name)
        await self.coordinator.register(payment)
        logging.info("Facilitator created payment %s", payment.payment_id)
        return payment

    async def sign_and_settle(
        self, payment: Payment, signer: TransactionSigner
    ) -> SettlementResult:
        """
        Sign ``payment.transaction`` with ``signer`` and submit it for settlement.

        Raises :class:`AlreadySettledError` if this client already holds a
        settlement result for the payment and :class:`SettlementInProgressError`
        while another attempt is outstanding.
        """
        return await self.coordinator.sign_and_settle(payment, signer)

    async def settle_signed(
        self, payment: Payment, signed_transaction: str
    ) -> SettlementResult:
        """
        Settle a transaction that was signed outside the SDK.
        """
        return await self.coordinator.settle_signed(payment, signed_transaction)

    async def verify_payment(self, transaction_signature: str) -> VerificationResult:
        return await self.status.verify(transaction_signature)

    async def health(self) -> HealthStatus:
        return await self.status.health()

    async def wait_for_confirmation(
        self,
        transaction_signature: str,
        *,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        return await self.status.wait_for_confirmation(
            transaction_signature,
            interval=self.config.poll_interval_seconds if interval is None else interval,
            timeout=self.config.confirm_timeout_seconds if timeout is None else timeout,
        )

    async def pay(
        self,
        request: PaymentRequest,
        signer: TransactionSigner,
        *,
        confirm: bool = False,
    ) -> SettlementResult:
        """
        Run the whole lifecycle for ``request``.

        With ``confirm=True`` a successful settlement is followed by polling
        until the transaction reaches a final status.
        """
        payment = await self.create_payment(request)
        result = await self.sign_and_settle(payment, signer)
        if confirm and result.success and result.signature is not None:
            verification = await self.wait_for_confirmation(result.signature)
            logging.info(
                "Transaction %s finished as %s (verified=%s)",
                result.signature,
                verification.status.value,
                verification.verified,
            )
        return result

    def settlement_for(self, payment_id: str) -> Optional[SettlementResult]:
        return self.coordinator.result_for(payment_id)

    def settlement_state(self, payment_id: str) -> Optional[SettlementState]:
        return self.coordinator.state_of(payment_id)

    async def forget(self, payment_id: str) -> bool:
        return await self.coordinator.forget(payment_id)

    def close(self) -> None:
        self.transport.close()

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> "PaymentClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
