import logging
from datetime import datetime, timezone

from localpickup.domain.models import Order, OrderStatus
from localpickup.domain.exceptions import (
    OrderNotFoundError, InvalidOrderStateError, CancellationNotSupportedError
)
from localpickup.application.interfaces import PinCache
from localpickup.application.validate_pin import forget_pin


logger = logging.getLogger(__name__)


class CancelOrderUseCase:
    """Отмена заказа клиентом.

    Без возврата денег отменяется только PENDING. Оплаченный заказ требует
    refund-политики, которой пока нет.
    """

    def __init__(self, unit_of_work, pin_cache: PinCache):
        self._uow = unit_of_work
        self._pin_cache = pin_cache

    async def __call__(self, order_id: str, customer_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order or order.customer_id != customer_id:
                raise OrderNotFoundError(f"order {order_id} not found")

            if order.requires_refund_to_cancel():
                raise CancellationNotSupportedError("cancellation of paid orders is not implemented")
            if not order.can_be_cancelled():
                raise InvalidOrderStateError("cancelled", order.status)

            updated = await uow.orders.update_status_if_current(
                order.id, {OrderStatus.PENDING}, OrderStatus.CANCELLED
            )
            if not updated:
                current = await uow.orders.get_by_id(order.id)
                raise InvalidOrderStateError("cancelled", current.status if current else order.status)
            await uow.commit()

        logger.info(f"Заказ {order.id} отменен (CANCELLED)")
        await forget_pin(self._pin_cache, order.id)

        return order.model_copy(update={
            "status": OrderStatus.CANCELLED,
            "pin": None,
            "updated_at": datetime.now(timezone.utc),
        })
