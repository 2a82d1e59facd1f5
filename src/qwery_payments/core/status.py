"""
Verification and health queries against the facilitator.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from .config import Network
from .errors import ConfirmationTimeoutError, ValidationError
from .models import HealthStatus, PaymentStatus, VerificationResult
from .payloads import build_verify_payload
from .transport import Transport

__all__ = ["StatusReporter"]


class StatusReporter:
    """
    Stateless pass-through for ``/payments/verify`` and ``/health``.

    Nothing is cached: repeated calls may return different answers as the
    chain advances.
    """

    def __init__(
        self,
        transport: Transport,
        network: Network,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._transport = transport
        self._network = network
        self._clock = clock
        self._sleep = sleep or asyncio.sleep

    async def verify(self, signature: str) -> VerificationResult:
        signature = (signature or "").strip()
        if not signature:
            raise ValidationError("signature", "must not be empty")
        logging.info("Verifying transaction %s on %s", signature, self._network.wire_name)
        response = await self._transport.post(
            "/payments/verify", build_verify_payload(signature, self._network)
        )
        return VerificationResult.from_response(response, signature=signature)

    async def health(self) -> HealthStatus:
        response = await self._transport.get("/health")
        status = HealthStatus.from_response(response)
        if not status.healthy:
            logging.warning("Facilitator reports status '%s'", status.status)
        return status

    async def wait_for_confirmation(
        self,
        signature: str,
        *,
        interval: float = 2.0,
        timeout: float = 60.0,
    ) -> VerificationResult:
        """
        Poll :meth:`verify` until the transaction reaches a final status.

        Returns the first result whose status is final, verified or not.
        Raises :class:`ConfirmationTimeoutError` once ``timeout`` elapses.
        """
        deadline = self._clock() + timeout
        last_status: Optional[PaymentStatus] = None
        while True:
            result = await self.verify(signature)
            if result.status.is_final:
                return result
            if result.status is not last_status:
                logging.info("Transaction %s is %s", signature, result.status.value)
                last_status = result.status
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ConfirmationTimeoutError(signature, timeout, result.status.value)
            await self._sleep(min(interval, remaining))
