from localpickup.domain.models import Order, Caller, Role
from localpickup.domain.exceptions import OrderNotFoundError


def _public(order: Order) -> Order:
    # PIN отдается только при создании
    return order.model_copy(update={"pin": None})


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, caller: Caller) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"order {order_id} not found")

            if caller.role == Role.CUSTOMER:
                allowed = order.customer_id == caller.user_id
            else:
                business = await uow.businesses.get_by_id(order.business_id)
                allowed = business is not None and business.owner_id == caller.user_id

            # Чужой заказ неотличим от несуществующего
            if not allowed:
                raise OrderNotFoundError(f"order {order_id} not found")
            return _public(order)


class ListCustomerOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, customer_id: str) -> list[Order]:
        async with self._uow() as uow:
            orders = await uow.orders.list_by_customer(customer_id)
            return [_public(order) for order in orders]
