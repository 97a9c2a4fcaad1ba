import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from pydantic import BaseModel

from localpickup.domain.models import Order, OrderLine, calculate_total
from localpickup.domain.pin import generate_pin
from localpickup.domain.exceptions import (
    BusinessNotFoundError, InvalidOrderError, OrderPersistenceError, PinCacheError
)
from localpickup.application.interfaces import PaymentGateway, PinCache
from localpickup.application.notifications import NotificationDispatcher


logger = logging.getLogger(__name__)

PIN_TTL_SECONDS = 24 * 60 * 60


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CreateOrderDTO(BaseModel):
    customer_id: str
    business_id: str
    items: list[OrderLine]
    customer_push_token: Optional[str] = None


class CreatedOrder(BaseModel):
    """Результат создания: заказ и PIN в открытом виде (отдается один раз)"""
    order: Order
    pin: str


class CreateOrderUseCase:
    def __init__(
        self,
        unit_of_work,
        payment_gateway: PaymentGateway,
        pin_cache: PinCache,
        dispatcher: NotificationDispatcher,
        notify_new_order,
        pin_ttl_seconds: int = PIN_TTL_SECONDS,
    ):
        self._uow = unit_of_work
        self._payments = payment_gateway
        self._pin_cache = pin_cache
        self._dispatcher = dispatcher
        self._notify_new_order = notify_new_order
        self._pin_ttl_seconds = pin_ttl_seconds

    async def __call__(self, order_data: CreateOrderDTO) -> CreatedOrder:
        logger.info(f"Создание заказа для клиента {order_data.customer_id}, точка {order_data.business_id}")

        # 1. Расчет суммы (клиентской сумме не доверяем)
        total = calculate_total(order_data.items)
        amount = to_minor_units(total)
        if amount < self._payments.minimum_amount:
            raise InvalidOrderError(
                f"minimum charge amount is ${Decimal(self._payments.minimum_amount) / 100:.2f}"
            )

        # 2. Точка должна существовать и быть активной
        async with self._uow() as uow:
            business = await uow.businesses.get_by_id(order_data.business_id)
        if not business or not business.is_active:
            raise BusinessNotFoundError(f"business {order_data.business_id} not found")

        # 3. Оплата: ровно один вызов, без повторов
        payment_id = await self._payments.charge(amount, idempotency_key=f"order_{uuid.uuid4()}")
        logger.info(f"Платеж {payment_id} на {total} проведен")

        # 4. PIN и сборка заказа
        pin = generate_pin()
        order = Order.build(
            customer_id=order_data.customer_id,
            business_id=order_data.business_id,
            lines=order_data.items,
            pin=pin,
            payment_id=payment_id,
            customer_push_token=order_data.customer_push_token,
        )

        # 5. Заголовок и позиции одной транзакцией
        try:
            async with self._uow() as uow:
                await uow.orders.create(order)
                await uow.commit()
        except Exception as e:
            logger.error(
                f"Заказ не сохранен после оплаты: payment_id={payment_id}, amount={total}, "
                f"customer_id={order_data.customer_id}, business_id={order_data.business_id}: {e}"
            )
            raise OrderPersistenceError(payment_id, total, order_data.customer_id) from e
        logger.info(f"Заказ создан: {order.id}")

        # 6. Кэш PIN: ошибка фатальна для запроса
        await self._cache_pin_or_fail(order.id, pin)

        # 7. Уведомление точке в фоне, запрос его не ждет
        self._dispatcher.dispatch(
            lambda: self._notify_new_order(order),
            description=f"new order {order.id}",
        )

        return CreatedOrder(order=order, pin=pin)

    async def _cache_pin_or_fail(self, order_id: str, pin: str) -> None:
        try:
            await self._pin_cache.set(order_id, pin, self._pin_ttl_seconds)
        except PinCacheError as e:
            logger.error(f"PIN заказа {order_id} не закэширован, запрос завершается ошибкой: {e}")
            raise
