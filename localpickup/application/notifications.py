import asyncio
import logging
from typing import Awaitable, Callable

from localpickup.domain.models import Order
from localpickup.application.interfaces import NotificationSink


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Фоновая отправка уведомлений (fire-and-forget).

    Запрос не ждет задачу, ошибки задачи только логируются.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, job: Callable[[], Awaitable[None]], description: str) -> None:
        task = asyncio.get_running_loop().create_task(self._run(job, description))
        # Держим ссылку, иначе задачу может собрать GC
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job: Callable[[], Awaitable[None]], description: str) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            logger.warning(f"Уведомление отменено: {description}")
            raise
        except Exception as e:
            logger.error(f"Ошибка фонового уведомления ({description}): {e}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 5.0) -> None:
        """Только для остановки приложения: ждем, затем отменяем оставшиеся"""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(f"Отменено {len(still_running)} неотправленных уведомлений")


def new_order_message(order: Order) -> tuple[str, str, dict]:
    title = "New order received"
    body = f"Order #{order.short_id} for ${order.total_amount:.2f}, get it ready!"
    data = {"type": "new_order", "order_id": order.id}
    return title, body, data


def order_ready_message(order: Order) -> tuple[str, str, dict]:
    title = "Your order is ready!"
    body = f"Order #{order.short_id} is ready. Show your PIN at pickup."
    data = {"type": "order_ready", "order_id": order.id}
    return title, body, data


class NotifyNewOrderUseCase:
    """Ищет push-токен точки и отправляет ей уведомление о новом заказе.

    Работает в фоне, поэтому открывает собственный unit of work.
    """

    def __init__(self, unit_of_work, sink: NotificationSink):
        self._uow = unit_of_work
        self._sink = sink

    async def __call__(self, order: Order) -> None:
        async with self._uow() as uow:
            business = await uow.businesses.get_by_id(order.business_id)

        if not business:
            logger.warning(f"Точка {order.business_id} не найдена, уведомление для {order.id} не отправлено")
            return

        title, body, data = new_order_message(order)
        await self._sink.send(business.push_token, title, body, data)
        logger.info(f"Уведомление о новом заказе {order.id} отправлено точке {business.id}")


class NotifyOrderReadyUseCase:
    def __init__(self, sink: NotificationSink):
        self._sink = sink

    async def __call__(self, order: Order) -> None:
        title, body, data = order_ready_message(order)
        await self._sink.send(order.customer_push_token or "", title, body, data)
        logger.info(f"Уведомление о готовности заказа {order.id} отправлено")
