"""Tests for the qwery-payments command line."""

import base64
import json
import logging

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from qwery_payments import PaymentClient, SigningError
from qwery_payments.cli import _dispatch, build_parser, run_cli

from conftest import BASE_URL, FakeResponse, FakeSession, payment_body


@pytest.fixture
def cli_args(tmp_path):
    return [
        "--env-file",
        str(tmp_path / "missing.env"),
        "--network",
        "devnet",
        "--set",
        f"QWERY_FACILITATOR_URL={BASE_URL}",
        "--set",
        "QWERY_MAX_ATTEMPTS=1",
    ]


@pytest.fixture
def keypair_file(tmp_path):
    keypair = Keypair()
    path = tmp_path / "payer.json"
    path.write_text(json.dumps(list(bytes(keypair))), encoding="utf-8")
    return keypair, path


def unsigned_transfer(payer: Keypair) -> str:
    instruction = transfer(
        TransferParams(
            from_pubkey=payer.pubkey(),
            to_pubkey=Keypair().pubkey(),
            lamports=10_000_000,
        )
    )
    message = Message.new_with_blockhash([instruction], payer.pubkey(), Hash.default())
    return base64.b64encode(bytes(Transaction.new_unsigned(message))).decode("ascii")


def test_health(cli_args):
    session = FakeSession().add("GET", "/health", {"status": "ok", "version": "1.2.0"})

    assert run_cli([*cli_args, "health"], session=session, base={}) == 0
    assert session.calls[0]["path"] == "/health"


def test_health_reports_degraded_facilitator(cli_args):
    session = FakeSession().add("GET", "/health", {"status": "degraded"})

    assert run_cli([*cli_args, "health"], session=session, base={}) == 1


def test_verify(cli_args):
    session = FakeSession().add(
        "POST", "/payments/verify", {"verified": True, "status": "finalized"}
    )

    assert run_cli([*cli_args, "verify", "sig_abc"], session=session, base={}) == 0
    assert session.calls[0]["json"] == {"signature": "sig_abc", "network": "solana-devnet"}


def test_verify_unverified_exits_non_zero(cli_args):
    session = FakeSession().add(
        "POST", "/payments/verify", {"verified": False, "status": "failed"}
    )

    assert run_cli([*cli_args, "verify", "sig_abc"], session=session, base={}) == 1


def test_pay_signs_with_keypair_file(cli_args, keypair_file):
    keypair, path = keypair_file
    session = FakeSession()
    session.add(
        "POST",
        "/payments/create",
        payment_body("p_cli", transaction=unsigned_transfer(keypair)),
    )
    session.add("POST", "/payments/settle", {"success": True, "signature": "sig_cli"})

    exit_code = run_cli(
        [
            *cli_args,
            "pay",
            "--amount",
            "0.01",
            "--token",
            "sol",
            "--recipient",
            "Addr1",
            "--metadata",
            "order=A-7",
            "--keypair-file",
            str(path),
        ],
        session=session,
        base={},
    )

    assert exit_code == 0
    create_body = session.calls_to("/payments/create")[0]["json"]
    assert create_body["token"] == "SOL"
    assert create_body["metadata"] == {"order": "A-7"}
    settle_body = session.calls_to("/payments/settle")[0]["json"]
    assert settle_body["payment_id"] == "p_cli"
    signed = Transaction.from_bytes(base64.b64decode(settle_body["signed_transaction"]))
    assert signed.signatures[0] != Signature.default()


def test_pay_reads_keypair_file_from_environment(cli_args, keypair_file):
    keypair, path = keypair_file
    session = FakeSession()
    session.add(
        "POST",
        "/payments/create",
        payment_body("p_env", transaction=unsigned_transfer(keypair)),
    )
    session.add("POST", "/payments/settle", {"success": False, "error": "blockhash expired"})

    exit_code = run_cli(
        [*cli_args, "pay", "--amount", "1", "--token", "SOL", "--recipient", "Addr1"],
        session=session,
        base={"QWERY_PAYER_KEYPAIR_FILE": str(path)},
    )

    assert exit_code == 1
    assert len(session.calls_to("/payments/settle")) == 1


def test_pay_without_signer_makes_no_request(cli_args):
    session = FakeSession()

    exit_code = run_cli(
        [*cli_args, "pay", "--amount", "1", "--token", "SOL", "--recipient", "Addr1"],
        session=session,
        base={},
    )

    assert exit_code == 1
    assert session.calls == []


def test_pay_with_invalid_amount_makes_no_request(cli_args, keypair_file):
    _, path = keypair_file
    session = FakeSession()

    exit_code = run_cli(
        [
            *cli_args,
            "pay",
            "--amount",
            "0",
            "--token",
            "SOL",
            "--recipient",
            "Addr1",
            "--keypair-file",
            str(path),
        ],
        session=session,
        base={},
    )

    assert exit_code == 1
    assert session.calls == []


def test_facilitator_rejection_exits_non_zero(cli_args):
    session = FakeSession().add(
        "POST", "/payments/verify", FakeResponse(404, {"error": "not found"})
    )

    assert run_cli([*cli_args, "verify", "sig_missing"], session=session, base={}) == 1


def test_invalid_configuration(tmp_path):
    session = FakeSession()

    exit_code = run_cli(
        ["--env-file", str(tmp_path / "missing.env"), "--network", "testnet", "health"],
        session=session,
        base={},
    )

    assert exit_code == 1
    assert session.calls == []


@pytest.mark.asyncio
async def test_pay_dispatch_without_signer_raises(devnet_config, fake_session):
    client = PaymentClient(devnet_config, session=fake_session)
    args = build_parser().parse_args(
        ["pay", "--amount", "1", "--token", "SOL", "--recipient", "Addr1"]
    )

    with pytest.raises(SigningError):
        await _dispatch(client, args, None)

    assert fake_session.calls == []


def test_debug_log_shows_setting_sources_without_secrets(cli_args, caplog):
    caplog.set_level(logging.DEBUG)
    session = FakeSession().add("GET", "/health", {"status": "ok"})

    exit_code = run_cli(
        ["--log-level", "DEBUG", *cli_args, "health"],
        session=session,
        base={"QWERY_API_KEY": "sk_live_abcdef123"},
    )

    assert exit_code == 0
    assert "QWERY_NETWORK=devnet (from override)" in caplog.text
    assert "QWERY_API_KEY=sk_l...23 (from environment)" in caplog.text
    assert "sk_live_abcdef123" not in caplog.text
    assert session.calls[0]["headers"]["Authorization"] == "Bearer sk_live_abcdef123"
