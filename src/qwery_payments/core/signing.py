"""
Signing and settlement of facilitator-issued transactions.

The coordinator never holds key material. It hands the unsigned transaction
to a caller-supplied :class:`TransactionSigner`, submits the result to the
facilitator and records the outcome so a payment is settled at most once per
client.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import enum
import inspect
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Dict, Optional, Protocol, Union, runtime_checkable

from solders.keypair import Keypair
from solders.transaction import Transaction

from .config import Network
from .errors import (
    AlreadySettledError,
    SettlementInProgressError,
    SigningError,
    UnknownPaymentError,
    ValidationError,
)
from .models import Payment, SettlementResult
from .payloads import build_settle_payload, is_base58
from .transport import Transport

__all__ = [
    "KeypairSigner",
    "SettlementCoordinator",
    "SettlementState",
    "TransactionSigner",
]


@runtime_checkable
class TransactionSigner(Protocol):
    """
    Capability that signs a facilitator transaction on behalf of the payer.

    Implement this protocol to plug in any wallet. ``sign_transaction`` may be
    a plain method or a coroutine function.
    """

    def sign_transaction(self, transaction: str) -> Union[str, Awaitable[str]]:
        """Return the base64 signed form of the base64 ``transaction``."""
        ...


class KeypairSigner:
    """
    :class:`TransactionSigner` backed by an in-memory Solana keypair.

    Example:
        ```python
        signer = KeypairSigner.from_base58(os.environ["QWERY_PAYER_PRIVATE_KEY"])
        ```
    """

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @property
    def address(self) -> str:
        return str(self._keypair.pubkey())

    @classmethod
    def from_base58(cls, private_key: str) -> "KeypairSigner":
        private_key = private_key.strip()
        if not is_base58(private_key) or not 80 <= len(private_key) <= 88:
            raise SigningError("Private key is not a valid base58 keypair")
        try:
            return cls(Keypair.from_base58_string(private_key))
        except ValueError as exc:
            raise SigningError("Private key is not a valid base58 keypair") from exc

    @classmethod
    def from_bytes(cls, private_key: bytes) -> "KeypairSigner":
        if len(private_key) != 64:
            raise SigningError(
                f"Private key must be 64 bytes, got {len(private_key)}"
            )
        try:
            return cls(Keypair.from_bytes(private_key))
        except ValueError as exc:
            raise SigningError("Private key bytes do not form a valid keypair") from exc

    @classmethod
    def from_json_file(cls, path: str | Path) -> "KeypairSigner":
        """Load a ``solana-keygen`` style JSON array of 64 integers."""
        try:
            values = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SigningError(f"Cannot read keypair file {path}: {exc}") from exc
        if not isinstance(values, list):
            raise SigningError(f"Keypair file {path} must contain a JSON array")
        try:
            raw = bytes(values)
        except (TypeError, ValueError) as exc:
            raise SigningError(f"Keypair file {path} must contain byte values") from exc
        return cls.from_bytes(raw)

    def sign_transaction(self, transaction: str) -> str:
        try:
            tx_bytes = base64.b64decode(transaction, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SigningError("Transaction is not valid base64") from exc

        try:
            tx = Transaction.from_bytes(tx_bytes)
        except ValueError as exc:
            raise SigningError(f"Cannot decode transaction: {exc}") from exc

        message = tx.message
        required = message.account_keys[: message.header.num_required_signatures]
        if self._keypair.pubkey() not in required:
            raise SigningError(
                f"{self.address} is not a required signer of the transaction"
            )
        tx.partial_sign([self._keypair], message.recent_blockhash)
        return base64.b64encode(bytes(tx)).decode("ascii")


class SettlementState(enum.Enum):
    ISSUED = "issued"
    IN_FLIGHT = "in_flight"
    SETTLED = "settled"


@dataclass
class _LedgerEntry:
    payment: Payment
    state: SettlementState = SettlementState.ISSUED
    result: Optional[SettlementResult] = None


class SettlementCoordinator:
    """
    Settles payments issued to one client, at most once each.

    Entries move ``issued -> in_flight -> settled``. Any decoded
    :class:`SettlementResult` is terminal. When an attempt ends without a
    facilitator verdict (transport failure, signer failure, cancellation)
    the entry drops back to ``issued``; use ``verify_payment`` to find out
    whether the transaction landed before retrying.
    """

    def __init__(self, transport: Transport, network: Network) -> None:
        self._transport = transport
        self._network = network
        self._ledger: Dict[str, _LedgerEntry] = {}
        self._lock = asyncio.Lock()

    async def register(self, payment: Payment) -> None:
        async with self._lock:
            self._ledger.setdefault(payment.payment_id, _LedgerEntry(payment))

    def state_of(self, payment_id: str) -> Optional[SettlementState]:
        entry = self._ledger.get(payment_id)
        return entry.state if entry is not None else None

    def result_for(self, payment_id: str) -> Optional[SettlementResult]:
        entry = self._ledger.get(payment_id)
        return entry.result if entry is not None else None

    async def forget(self, payment_id: str) -> bool:
        """
        Drop a settled or unsettled entry. In-flight entries are kept.
        """
        async with self._lock:
            entry = self._ledger.get(payment_id)
            if entry is None or entry.state is SettlementState.IN_FLIGHT:
                return False
            del self._ledger[payment_id]
            return True

    async def _claim(self, payment: Payment) -> None:
        if payment.network != self._network.wire_name:
            raise ValidationError(
                "network",
                f"payment {payment.payment_id} belongs to {payment.network}, "
                f"client is on {self._network.wire_name}",
            )
        async with self._lock:
            entry = self._ledger.get(payment.payment_id)
            if entry is None or entry.payment != payment:
                raise UnknownPaymentError(payment.payment_id)
            if entry.result is not None:
                raise AlreadySettledError(payment.payment_id, entry.result)
            if entry.state is SettlementState.IN_FLIGHT:
                raise SettlementInProgressError(payment.payment_id)
            entry.state = SettlementState.IN_FLIGHT

    async def _release(self, payment_id: str, result: Optional[SettlementResult]) -> None:
        async with self._lock:
            entry = self._ledger[payment_id]
            if result is None:
                entry.state = SettlementState.ISSUED
            else:
                entry.state = SettlementState.SETTLED
                entry.result = result

    async def _sign(self, payment: Payment, signer: TransactionSigner) -> str:
        try:
            signed = signer.sign_transaction(payment.transaction)
            if inspect.isawaitable(signed):
                signed = await signed
        except SigningError:
            raise
        except Exception as exc:
            raise SigningError(
                f"Signer failed for payment {payment.payment_id}: {exc}"
            ) from exc
        if not isinstance(signed, str) or not signed:
            raise SigningError(
                f"Signer returned no transaction for payment {payment.payment_id}"
            )
        return signed

    async def _submit(self, payment: Payment, signed_transaction: str) -> SettlementResult:
        logging.info("Submitting payment %s for settlement", payment.payment_id)
        response = await self._transport.post(
            "/payments/settle",
            build_settle_payload(payment.payment_id, signed_transaction),
        )
        result = SettlementResult.from_response(response, payment_id=payment.payment_id)
        if result.success:
            logging.info(
                "Payment %s settled with signature %s",
                payment.payment_id,
                result.signature,
            )
        else:
            logging.warning(
                "Facilitator refused settlement of payment %s: %s",
                payment.payment_id,
                result.error,
            )
        return result

    async def sign_and_settle(
        self, payment: Payment, signer: TransactionSigner
    ) -> SettlementResult:
        await self._claim(payment)
        result: Optional[SettlementResult] = None
        try:
            signed = await self._sign(payment, signer)
            result = await self._submit(payment, signed)
        finally:
            await asyncio.shield(self._release(payment.payment_id, result))
        return result

    async def settle_signed(
        self, payment: Payment, signed_transaction: str
    ) -> SettlementResult:
        if not signed_transaction:
            raise ValidationError("signed_transaction", "must not be empty")
        await self._claim(payment)
        result: Optional[SettlementResult] = None
        try:
            result = await self._submit(payment, signed_transaction)
        finally:
            await asyncio.shield(self._release(payment.payment_id, result))
        return result
