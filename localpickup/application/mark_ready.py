import logging
from datetime import datetime, timezone
from pydantic import BaseModel

from localpickup.domain.models import Order, OrderStatus
from localpickup.domain.exceptions import (
    OrderNotFoundError, OrderAccessDeniedError, InvalidOrderStateError
)
from localpickup.application.notifications import NotificationDispatcher


logger = logging.getLogger(__name__)


class MarkOrderReadyDTO(BaseModel):
    order_id: str
    business_id: str


class MarkOrderReadyUseCase:
    def __init__(self, unit_of_work, dispatcher: NotificationDispatcher, notify_order_ready):
        self._uow = unit_of_work
        self._dispatcher = dispatcher
        self._notify_order_ready = notify_order_ready

    async def __call__(self, dto: MarkOrderReadyDTO) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"order {dto.order_id} not found")
            if order.business_id != dto.business_id:
                raise OrderAccessDeniedError("order does not belong to your business")
            if not order.can_be_marked_ready():
                raise InvalidOrderStateError("marked ready", order.status)

            updated = await uow.orders.update_status_if_current(
                order.id, {OrderStatus.PAID}, OrderStatus.READY
            )
            if not updated:
                current = await uow.orders.get_by_id(order.id)
                raise InvalidOrderStateError("marked ready", current.status if current else order.status)
            await uow.commit()
        logger.info(f"Заказ {order.id} готов к выдаче (READY)")

        ready = order.model_copy(update={
            "status": OrderStatus.READY,
            "pin": None,
            "updated_at": datetime.now(timezone.utc),
        })
        if ready.customer_push_token:
            self._dispatcher.dispatch(
                lambda: self._notify_order_ready(ready),
                description=f"order ready {ready.id}",
            )
        return ready
