"""
Minimal script that uses the public API to pay through the Qwery facilitator.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Iterable, Tuple

from qwery_payments import (
    KeypairSigner,
    QweryError,
    load_client_config,
    send_payment,
)


def _override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _build_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a Solana payment using the SDK API")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing QWERY_* settings",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_override,
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
        help="Override the network (mainnet or devnet)",
    )
    parser.add_argument(
        "--facilitator-url",
        help="Override the facilitator base URL (default: https://facilitator.qwery.xyz)",
    )
    parser.add_argument(
        "--keypair-file",
        required=True,
        help="solana-keygen JSON keypair of the payer",
    )
    parser.add_argument("--amount", default="0.01", help="Amount in token units")
    parser.add_argument("--token", default="SOL", help="Token symbol")
    parser.add_argument("--recipient", required=True, help="Recipient wallet address")
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Wait until the transaction reaches a final status",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = load_client_config(
            env_file=args.env_file,
            overrides=_build_overrides(args.set or ()),
            network=args.network,
            facilitator_url=args.facilitator_url,
        )
        signer = KeypairSigner.from_json_file(args.keypair_file)
    except (QweryError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    logging.info(
        "Paying %s %s to %s via %s", args.amount, args.token, args.recipient, config.facilitator_url
    )

    try:
        settlement = asyncio.run(
            send_payment(
                amount=args.amount,
                token=args.token,
                recipient=args.recipient,
                signer=signer,
                confirm=args.confirm,
                config=config,
            )
        )
    except QweryError as exc:
        logging.error("Payment failed: %s", exc)
        return 1

    if settlement.success:
        logging.info(
            "Payment %s settled. Transaction signature: %s",
            settlement.payment_id,
            settlement.signature,
        )
        return 0

    logging.error("Settlement failed: %s", settlement.error)
    return 1


if __name__ == "__main__":
    sys.exit(main())
