import re
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import stripe

from localpickup.domain.exceptions import InvalidOrderError, PaymentFailedError
from localpickup.infrastructure.payment_gateway import (
    PaymentGatewayConfig, SimulatedPaymentGateway, StripePaymentGateway, create_payment_gateway
)


async def test_simulated_gateway_returns_reference():
    gateway = SimulatedPaymentGateway(PaymentGatewayConfig(simulate=True))

    reference = await gateway.charge(2498, idempotency_key="order_1")

    assert re.fullmatch(r"pi_simulated_2498_cents_[0-9a-f]{8}", reference)


async def test_minimum_amount_is_enforced():
    gateway = SimulatedPaymentGateway(PaymentGatewayConfig(minimum_amount=50))

    with pytest.raises(InvalidOrderError, match=r"\$0.50"):
        await gateway.charge(49, idempotency_key="order_1")


def test_factory_uses_simulation_without_key():
    assert isinstance(create_payment_gateway(PaymentGatewayConfig()), SimulatedPaymentGateway)
    assert isinstance(
        create_payment_gateway(PaymentGatewayConfig(secret_key="sk_test_x", simulate=True)),
        SimulatedPaymentGateway
    )


def test_factory_uses_stripe_with_key():
    gateway = create_payment_gateway(PaymentGatewayConfig(secret_key="sk_test_x"))

    assert isinstance(gateway, StripePaymentGateway)
    # Ключ передается клиенту, глобальный stripe.api_key не трогаем
    assert stripe.api_key is None


def _stripe_gateway(create_async: AsyncMock, **config) -> StripePaymentGateway:
    gateway = StripePaymentGateway(PaymentGatewayConfig(secret_key="sk_test_x", **config))
    gateway._client = SimpleNamespace(payment_intents=SimpleNamespace(create_async=create_async))
    return gateway


async def test_stripe_charge_creates_payment_intent():
    create_async = AsyncMock(return_value=SimpleNamespace(id="pi_123"))
    gateway = _stripe_gateway(create_async, currency="eur")

    reference = await gateway.charge(2498, idempotency_key="order_abc")

    assert reference == "pi_123"
    create_async.assert_awaited_once_with(
        params={
            "amount": 2498,
            "currency": "eur",
            "automatic_payment_methods": {"enabled": True},
        },
        options={"idempotency_key": "order_abc"},
    )


async def test_stripe_error_becomes_payment_failed():
    create_async = AsyncMock(side_effect=stripe.StripeError("card declined"))
    gateway = _stripe_gateway(create_async)

    with pytest.raises(PaymentFailedError, match="card declined"):
        await gateway.charge(2498, idempotency_key="order_abc")

    assert create_async.await_count == 1


async def test_stripe_below_minimum_is_not_sent():
    create_async = AsyncMock()
    gateway = _stripe_gateway(create_async)

    with pytest.raises(InvalidOrderError):
        await gateway.charge(10, idempotency_key="order_abc")

    create_async.assert_not_awaited()
