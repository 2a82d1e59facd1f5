"""End-to-end tests for the PaymentClient lifecycle."""

from decimal import Decimal

import pytest
import requests

from qwery_payments import (
    AlreadySettledError,
    ClientConfig,
    FacilitatorError,
    Network,
    PaymentClient,
    PaymentRequest,
    PaymentStatus,
    RetriesExhaustedError,
    SettlementState,
    UnknownPaymentError,
    ValidationError,
    create_payment_client,
    send_payment,
)

from conftest import BASE_URL, FakeResponse, payment_body


@pytest.mark.asyncio
async def test_devnet_lifecycle(client, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add(
        "POST",
        "/payments/settle",
        {"success": True, "signature": "sig_abc", "status": "settled"},
    )
    fake_session.add("POST", "/payments/verify", {"verified": True, "status": "settled"})

    payment = await client.create_payment(amount=0.01, token="SOL", recipient="Addr1")
    settlement = await client.sign_and_settle(payment, signer)
    verification = await client.verify_payment("sig_abc")

    assert payment.payment_id == "p_123"
    assert payment.transaction == "dW5zaWduZWQ="
    assert settlement.success is True
    assert settlement.signature == "sig_abc"
    assert verification.verified is True
    assert verification.status is PaymentStatus.SETTLED

    create_call = fake_session.calls_to("/payments/create")[0]
    assert create_call["json"] == {
        "amount": 0.01,
        "token": "SOL",
        "recipient": "Addr1",
        "network": "solana-devnet",
        "metadata": None,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount, token, recipient",
    [
        ("0.01", "SOL", "Addr1"),
        (Decimal("250"), "usdc", "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"),
        (5, "USDT", "Addr1"),
    ],
)
async def test_valid_request_makes_exactly_one_call(
    client, fake_session, amount, token, recipient
):
    fake_session.add("POST", "/payments/create", payment_body("p_valid"))

    payment = await client.create_payment(
        PaymentRequest.build(amount, token, recipient, {"order": "A-1"})
    )

    assert payment.payment_id
    assert len(fake_session.calls) == 1
    assert client.settlement_state("p_valid") is SettlementState.ISSUED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount, token, recipient, field",
    [
        (0, "SOL", "Addr1", "amount"),
        ("-0.5", "SOL", "Addr1", "amount"),
        ("1", "DOGE", "Addr1", "token"),
        ("1", "SOL", "", "recipient"),
    ],
)
async def test_invalid_request_makes_no_call(
    client, fake_session, amount, token, recipient, field
):
    with pytest.raises(ValidationError) as exc_info:
        await client.create_payment(amount=amount, token=token, recipient=recipient)

    assert exc_info.value.field == field
    assert fake_session.calls == []


@pytest.mark.asyncio
async def test_missing_fields_are_validation_errors(client, fake_session):
    with pytest.raises(ValidationError) as exc_info:
        await client.create_payment(amount="1", token="SOL")

    assert exc_info.value.field == "recipient"
    assert fake_session.calls == []


@pytest.mark.asyncio
async def test_request_and_fields_are_exclusive(client):
    with pytest.raises(TypeError):
        await client.create_payment(
            PaymentRequest.build("1", "SOL", "Addr1"), amount="2"
        )


@pytest.mark.asyncio
async def test_strict_recipient_rejects_placeholder(fake_session, recording_sleep):
    config = ClientConfig(
        network=Network.DEVNET, facilitator_url=BASE_URL, strict_recipient=True
    )
    client = PaymentClient(config, session=fake_session, sleep=recording_sleep)

    with pytest.raises(ValidationError):
        await client.create_payment(amount="1", token="SOL", recipient="Addr1")

    assert fake_session.calls == []


@pytest.mark.asyncio
async def test_create_rejection_surfaces_code(client, fake_session):
    fake_session.add(
        "POST",
        "/payments/create",
        FakeResponse(400, {"error": "amount below minimum", "code": "amount_too_small"}),
    )

    with pytest.raises(FacilitatorError) as exc_info:
        await client.create_payment(amount="0.0000001", token="SOL", recipient="Addr1")

    assert exc_info.value.code == "amount_too_small"
    assert len(fake_session.calls) == 1


@pytest.mark.asyncio
async def test_create_without_payment_id_is_invalid(client, fake_session):
    fake_session.add("POST", "/payments/create", payment_body(payment_id=""))

    with pytest.raises(FacilitatorError) as exc_info:
        await client.create_payment(amount="1", token="SOL", recipient="Addr1")

    assert exc_info.value.code == "invalid_response"


@pytest.mark.asyncio
async def test_create_retries_transient_failures(client, fake_session, recording_sleep):
    fake_session.add(
        "POST",
        "/payments/create",
        requests.ConnectionError("reset"),
        FakeResponse(502, text="bad gateway"),
        payment_body("p_retry"),
    )

    payment = await client.create_payment(amount="1", token="SOL", recipient="Addr1")

    assert payment.payment_id == "p_retry"
    assert len(fake_session.calls) == 3
    assert recording_sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_create_gives_up_after_ceiling(client, fake_session):
    fake_session.add("POST", "/payments/create", requests.Timeout("slow"))

    with pytest.raises(RetriesExhaustedError):
        await client.create_payment(amount="1", token="SOL", recipient="Addr1")

    assert len(fake_session.calls) == 3


@pytest.mark.asyncio
async def test_second_settlement_fails_without_network_call(client, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/settle", {"success": True, "signature": "sig_abc"})
    payment = await client.create_payment(amount="0.01", token="SOL", recipient="Addr1")

    first = await client.sign_and_settle(payment, signer)
    with pytest.raises(AlreadySettledError):
        await client.sign_and_settle(payment, signer)

    assert client.settlement_for("p_123") is first
    assert len(fake_session.calls_to("/payments/settle")) == 1


@pytest.mark.asyncio
async def test_settlement_state_is_per_client(devnet_config, fake_session, recording_sleep, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    creator = PaymentClient(devnet_config, session=fake_session, sleep=recording_sleep)
    other = PaymentClient(devnet_config, session=fake_session, sleep=recording_sleep)
    payment = await creator.create_payment(amount="0.01", token="SOL", recipient="Addr1")

    with pytest.raises(UnknownPaymentError):
        await other.sign_and_settle(payment, signer)

    assert fake_session.calls_to("/payments/settle") == []


@pytest.mark.asyncio
async def test_settle_signed(client, fake_session):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/settle", {"success": True, "signature": "sig_ext"})
    payment = await client.create_payment(amount="0.01", token="SOL", recipient="Addr1")

    result = await client.settle_signed(payment, "c2lnbmVkLWVsc2V3aGVyZQ==")

    assert result.signature == "sig_ext"
    assert fake_session.calls_to("/payments/settle")[0]["json"] == {
        "payment_id": "p_123",
        "signed_transaction": "c2lnbmVkLWVsc2V3aGVyZQ==",
    }


@pytest.mark.asyncio
async def test_verify_has_no_side_effects(client, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/verify", {"verified": True, "status": "settled"})
    payment = await client.create_payment(amount="0.01", token="SOL", recipient="Addr1")

    for _ in range(3):
        await client.verify_payment("sig_abc")

    assert client.settlement_state(payment.payment_id) is SettlementState.ISSUED
    assert client.settlement_for(payment.payment_id) is None
    verify_calls = fake_session.calls_to("/payments/verify")
    assert len(verify_calls) == 3
    assert all(call["json"] == verify_calls[0]["json"] for call in verify_calls)
    assert fake_session.calls_to("/payments/settle") == []


@pytest.mark.asyncio
async def test_pay_with_confirmation(client, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/settle", {"success": True, "signature": "sig_abc"})
    fake_session.add(
        "POST",
        "/payments/verify",
        {"verified": False, "status": "pending"},
        {"verified": True, "status": "finalized"},
    )

    result = await client.pay(
        PaymentRequest.build("0.01", "SOL", "Addr1"), signer, confirm=True
    )

    assert result.signature == "sig_abc"
    assert len(fake_session.calls_to("/payments/verify")) == 2


@pytest.mark.asyncio
async def test_pay_skips_confirmation_on_failure(client, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/settle", {"success": False, "error": "expired"})

    result = await client.pay(
        PaymentRequest.build("0.01", "SOL", "Addr1"), signer, confirm=True
    )

    assert result.success is False
    assert fake_session.calls_to("/payments/verify") == []


@pytest.mark.asyncio
async def test_health(client, fake_session):
    fake_session.add("GET", "/health", {"status": "ok", "version": "1.0.0"})

    health = await client.health()

    assert health.healthy
    assert health.version == "1.0.0"


@pytest.mark.asyncio
async def test_context_manager_keeps_injected_session(client, fake_session):
    async with client as entered:
        assert entered is client
    assert fake_session.closed is False


@pytest.mark.asyncio
async def test_api_key_header(fake_session, recording_sleep):
    config = ClientConfig(network=Network.DEVNET, facilitator_url=BASE_URL, api_key="k")
    client = PaymentClient(config, session=fake_session, sleep=recording_sleep)
    fake_session.add("GET", "/health", {"status": "ok"})

    await client.health()

    assert fake_session.calls[0]["headers"]["Authorization"] == "Bearer k"


def test_create_payment_client_from_environment(fake_session):
    client = create_payment_client(
        session=fake_session,
        env_file=None,
        base={"QWERY_NETWORK": "devnet", "QWERY_FACILITATOR_URL": BASE_URL},
    )

    assert client.network is Network.DEVNET
    assert client.config.facilitator_url == BASE_URL


def test_create_payment_client_rejects_mixed_inputs(devnet_config):
    with pytest.raises(ValueError):
        create_payment_client(config=devnet_config, network="mainnet")


@pytest.mark.asyncio
async def test_send_payment(devnet_config, fake_session, signer):
    fake_session.add("POST", "/payments/create", payment_body("p_123"))
    fake_session.add("POST", "/payments/settle", {"success": True, "signature": "sig_abc"})

    result = await send_payment(
        amount="0.01",
        token="SOL",
        recipient="Addr1",
        signer=signer,
        config=devnet_config,
        session=fake_session,
    )

    assert result.success
    assert result.payment_id == "p_123"
