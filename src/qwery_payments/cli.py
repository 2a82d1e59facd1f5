"""
Command-line interface for exercising the Qwery facilitator APIs.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Iterable, Mapping, Optional, Sequence, Tuple

import requests

from .api import create_payment_client
from .core.client import PaymentClient
from .core.config import ClientConfig
from .core.environment import build_environment
from .core.errors import ConfigError, QweryError, SigningError
from .core.models import SettlementResult
from .core.payloads import PaymentRequest
from .core.signing import KeypairSigner

PRIVATE_KEY_ENV = "QWERY_PAYER_PRIVATE_KEY"
KEYPAIR_FILE_ENV = "QWERY_PAYER_KEYPAIR_FILE"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _key_value(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Values must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Key must not be empty")
    return key, val


def _collect_pairs(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    collected: dict[str, str] = {}
    for key, value in pairs:
        collected[key] = value
    return collected


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qwery-payments",
        description="Create, settle and verify Solana payments through the Qwery facilitator",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing QWERY_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument(
        "--network",
        help="Network to use: mainnet or devnet (default: QWERY_NETWORK or mainnet)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check that the facilitator is up")

    verify = subparsers.add_parser("verify", help="Verify a settled transaction")
    verify.add_argument("signature", help="Transaction signature to verify")
    verify.add_argument(
        "--wait",
        action="store_true",
        help="Poll until the transaction reaches a final status",
    )

    pay = subparsers.add_parser("pay", help="Create, sign and settle a payment")
    pay.add_argument("--amount", required=True, help="Amount in token units (e.g. 0.01)")
    pay.add_argument("--token", required=True, help="Token symbol (SOL, USDC, USDT)")
    pay.add_argument("--recipient", required=True, help="Recipient wallet address")
    pay.add_argument(
        "--metadata",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=None,
        help="Attach metadata to the payment (repeatable)",
    )
    pay.add_argument(
        "--keypair-file",
        help=f"solana-keygen JSON keypair (default: ${KEYPAIR_FILE_ENV}, then ${PRIVATE_KEY_ENV})",
    )
    pay.add_argument(
        "--confirm",
        action="store_true",
        help="Poll verification after settlement until the transaction is final",
    )
    return parser


def _load_signer(keypair_file: Optional[str], values: Mapping[str, str]) -> KeypairSigner:
    path = keypair_file or values.get(KEYPAIR_FILE_ENV)
    if path:
        return KeypairSigner.from_json_file(path)
    private_key = values.get(PRIVATE_KEY_ENV)
    if private_key:
        return KeypairSigner.from_base58(private_key)
    raise SigningError(
        f"Provide --keypair-file, {KEYPAIR_FILE_ENV} or {PRIVATE_KEY_ENV} to sign payments"
    )


async def _run_health(client: PaymentClient) -> int:
    status = await client.health()
    logging.info(
        "Facilitator status: %s (version %s)", status.status, status.version or "unknown"
    )
    for network, network_status in status.networks.items():
        logging.info("  %s: %s", network, network_status)
    return 0 if status.healthy else 1


async def _run_verify(client: PaymentClient, args: argparse.Namespace) -> int:
    if args.wait:
        result = await client.wait_for_confirmation(args.signature)
    else:
        result = await client.verify_payment(args.signature)
    logging.info(
        "Transaction %s: verified=%s status=%s confirmations=%s",
        result.signature,
        result.verified,
        result.status.value,
        result.confirmations,
    )
    return 0 if result.verified else 1


async def _run_pay(
    client: PaymentClient, args: argparse.Namespace, signer: KeypairSigner
) -> int:
    request = PaymentRequest.build(
        args.amount,
        args.token,
        args.recipient,
        _collect_pairs(args.metadata or ()) or None,
    )
    logging.info("Paying from %s", signer.address)
    settlement = await client.pay(request, signer, confirm=args.confirm)
    return _handle_settlement(settlement)


def _handle_settlement(settlement: SettlementResult) -> int:
    if not settlement.success:
        logging.error(
            "Settlement of payment %s failed: %s", settlement.payment_id, settlement.error
        )
        return 1

    logging.info(
        "Payment %s settled. Transaction signature: %s",
        settlement.payment_id,
        settlement.signature,
    )
    return 0


async def _dispatch(
    client: PaymentClient,
    args: argparse.Namespace,
    signer: Optional[KeypairSigner],
) -> int:
    async with client:
        if args.command == "health":
            return await _run_health(client)
        if args.command == "verify":
            return await _run_verify(client, args)
        if signer is None:
            raise SigningError("No payer keypair loaded for the pay command")
        return await _run_pay(client, args, signer)


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    session: Optional[requests.Session] = None,
    base: Optional[Mapping[str, str]] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_pairs(args.set or ())
    if args.network:
        overrides["QWERY_NETWORK"] = args.network

    environment = build_environment(
        env_file=args.env_file, base=base, overrides=overrides
    )
    for key, value in environment.client_settings().items():
        logging.debug("%s=%s (from %s)", key, value, environment.source_of(key))

    try:
        config = ClientConfig.from_mapping(environment.variables)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    signer: Optional[KeypairSigner] = None
    if args.command == "pay":
        try:
            signer = _load_signer(args.keypair_file, environment.variables)
        except SigningError as exc:
            logging.error("Cannot load payer keypair: %s", exc)
            return 1

    client = create_payment_client(config=config, session=session)
    try:
        return asyncio.run(_dispatch(client, args, signer))
    except QweryError as exc:
        logging.error("%s failed: %s", args.command, exc)
        return 1


def main() -> None:
    sys.exit(run_cli())
