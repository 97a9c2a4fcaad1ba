import logging
import uuid
from pydantic import BaseModel
import stripe

from localpickup.domain.exceptions import InvalidOrderError, PaymentFailedError
from localpickup.application.interfaces import PaymentGateway

logger = logging.getLogger(__name__)


class PaymentGatewayConfig(BaseModel):
    """Явная конфигурация платежного шлюза (без глобального stripe.api_key)"""
    secret_key: str = ""
    currency: str = "usd"
    minimum_amount: int = 50
    timeout: float = 30.0
    simulate: bool = False


def _check_minimum(amount_minor_units: int, minimum: int) -> None:
    if amount_minor_units < minimum:
        raise InvalidOrderError(f"minimum charge amount is ${minimum / 100:.2f}")


class StripePaymentGateway(PaymentGateway):
    def __init__(self, config: PaymentGatewayConfig):
        self._config = config
        # Без автоматических повторов: одна попытка создания дает не более одного списания
        self._client = stripe.StripeClient(
            config.secret_key,
            http_client=stripe.HTTPXClient(timeout=config.timeout),
            max_network_retries=0,
        )

    @property
    def minimum_amount(self) -> int:
        return self._config.minimum_amount

    async def charge(self, amount_minor_units: int, idempotency_key: str) -> str:
        _check_minimum(amount_minor_units, self.minimum_amount)
        try:
            intent = await self._client.payment_intents.create_async(
                params={
                    "amount": amount_minor_units,
                    "currency": self._config.currency,
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe ошибка при списании {amount_minor_units} {self._config.currency}: {e}")
            raise PaymentFailedError(e.user_message or str(e)) from e

        logger.info(f"Stripe PaymentIntent {intent.id} создан на {amount_minor_units}")
        return intent.id


class SimulatedPaymentGateway(PaymentGateway):
    """Для локальной разработки: всегда успешный платеж"""

    def __init__(self, config: PaymentGatewayConfig):
        self._config = config

    @property
    def minimum_amount(self) -> int:
        return self._config.minimum_amount

    async def charge(self, amount_minor_units: int, idempotency_key: str) -> str:
        _check_minimum(amount_minor_units, self.minimum_amount)
        payment_id = f"pi_simulated_{amount_minor_units}_cents_{uuid.uuid4().hex[:8]}"
        logger.warning(f"Симуляция платежа: {payment_id}")
        return payment_id


def create_payment_gateway(config: PaymentGatewayConfig) -> PaymentGateway:
    if config.simulate or not config.secret_key:
        logger.warning("Stripe ключ не задан, используется симуляция платежей")
        return SimulatedPaymentGateway(config)
    return StripePaymentGateway(config)
