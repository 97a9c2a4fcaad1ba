import logging
from datetime import datetime, timezone
from pydantic import BaseModel

from localpickup.domain.models import Order, OrderStatus, REDEEMABLE_STATUSES
from localpickup.domain.exceptions import (
    OrderNotFoundError, OrderAccessDeniedError, InvalidOrderStateError, InvalidPINError, PinCacheError
)
from localpickup.application.interfaces import PinCache


logger = logging.getLogger(__name__)


class ValidatePinDTO(BaseModel):
    order_id: str
    pin: str
    business_id: str


async def forget_pin(pin_cache: PinCache, order_id: str) -> None:
    """Удаление PIN из кэша не критично: запись истечет сама, а статус уже закрыт"""
    try:
        await pin_cache.delete(order_id)
    except PinCacheError as e:
        logger.warning(f"Не удалось удалить PIN заказа {order_id} из кэша: {e}")


class ValidatePinUseCase:
    def __init__(self, unit_of_work, pin_cache: PinCache):
        self._uow = unit_of_work
        self._pin_cache = pin_cache

    async def __call__(self, dto: ValidatePinDTO) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)

        if not order:
            raise OrderNotFoundError(f"order {dto.order_id} not found")
        if order.business_id != dto.business_id:
            raise OrderAccessDeniedError("order does not belong to your business")
        if not order.can_be_completed():
            raise InvalidOrderStateError("completed", order.status)

        expected_pin = await self._resolve_pin(order)
        if dto.pin != expected_pin:
            logger.info(f"Неверный PIN для заказа {order.id}")
            raise InvalidPINError()

        # Условный переход: из двух параллельных выдач пройдет только одна
        async with self._uow() as uow:
            updated = await uow.orders.update_status_if_current(
                order.id, REDEEMABLE_STATUSES, OrderStatus.COMPLETED
            )
            if not updated:
                current = await uow.orders.get_by_id(order.id)
                status = current.status if current else order.status
                logger.warning(f"Заказ {order.id} уже сменил статус на {status.value}")
                raise InvalidOrderStateError("completed", status)
            await uow.commit()
        logger.info(f"Заказ {order.id} выдан (COMPLETED)")

        await forget_pin(self._pin_cache, order.id)

        return order.model_copy(update={
            "status": OrderStatus.COMPLETED,
            "pin": None,
            "updated_at": datetime.now(timezone.utc),
        })

    async def _resolve_pin(self, order: Order) -> str | None:
        """Быстрый путь через кэш, при промахе значение из БД"""
        cached = await self._pin_cache.get(order.id)
        if cached is None:
            logger.info(f"PIN заказа {order.id} не найден в кэше, используем БД")
            return order.pin
        return cached
