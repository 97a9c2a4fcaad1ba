from abc import ABC, abstractmethod
from typing import Iterable, Optional, List
from localpickup.domain.models import Order, OrderStatus, Business, GeoMatch


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_status_if_current(
        self, order_id: str, expected: Iterable[OrderStatus], status: OrderStatus
    ) -> bool:
        """Условное обновление: True, если статус был одним из expected"""
        pass

    @abstractmethod
    async def list_by_customer(self, customer_id: str) -> List[Order]:
        pass


class BusinessRepository(ABC):
    @abstractmethod
    async def get_by_id(self, business_id: str) -> Optional[Business]:
        pass

    @abstractmethod
    async def get_by_ids(self, business_ids: List[str]) -> List[Business]:
        pass

    @abstractmethod
    async def create(self, business: Business) -> None:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def businesses(self) -> BusinessRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentGateway(ABC):
    @property
    @abstractmethod
    def minimum_amount(self) -> int:
        """Минимальная сумма списания в минорных единицах (центах)"""
        pass

    @abstractmethod
    async def charge(self, amount_minor_units: int, idempotency_key: str) -> str:
        """Списывает сумму и возвращает идентификатор платежа"""
        pass


class PinCache(ABC):
    @abstractmethod
    async def set(self, order_id: str, pin: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def delete(self, order_id: str) -> None:
        pass


class GeoIndex(ABC):
    @abstractmethod
    async def add(self, business_id: str, latitude: float, longitude: float) -> None:
        pass

    @abstractmethod
    async def search(self, latitude: float, longitude: float, radius_km: float) -> List[GeoMatch]:
        pass


class NotificationSink(ABC):
    @abstractmethod
    async def send(self, token: str, title: str, body: str, data: dict) -> None:
        pass
