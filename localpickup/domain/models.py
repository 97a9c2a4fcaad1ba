import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from localpickup.domain.exceptions import InvalidOrderError


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# PIN можно предъявить только в этих статусах
REDEEMABLE_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.READY})

# Верхние границы корзины; сумма ограничена лимитом Stripe на одно списание
MAX_LINE_QUANTITY = 10_000
MAX_ORDER_TOTAL = Decimal("999999.99")


class Role(str, Enum):
    CUSTOMER = "customer"
    BUSINESS_OWNER = "business_owner"


class Caller(BaseModel):
    """Аутентифицированный пользователь, пришедший от gateway"""
    user_id: str
    role: Role


class OrderLine(BaseModel):
    """Строка корзины из запроса"""
    product_name: str
    quantity: int
    unit_price: Decimal


class OrderItem(BaseModel):
    """Value Object — позиция заказа"""
    id: str
    order_id: str
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def calculate_total(lines: list[OrderLine]) -> Decimal:
    """Сумма заказа: только Σ(quantity × unit_price), клиентской сумме не доверяем"""
    if not lines:
        raise InvalidOrderError("order must contain at least one item")

    total = Decimal("0")
    for line in lines:
        if not line.product_name.strip():
            raise InvalidOrderError("product name is required")
        if line.quantity <= 0:
            raise InvalidOrderError(f"quantity for {line.product_name!r} must be positive")
        if line.quantity > MAX_LINE_QUANTITY:
            raise InvalidOrderError(f"quantity for {line.product_name!r} must not exceed {MAX_LINE_QUANTITY}")
        if line.unit_price <= 0:
            raise InvalidOrderError(f"unit price for {line.product_name!r} must be positive")
        if line.unit_price > MAX_ORDER_TOTAL:
            raise InvalidOrderError(f"unit price for {line.product_name!r} is too large")
        total += line.unit_price * line.quantity
        if total > MAX_ORDER_TOTAL:
            raise InvalidOrderError(f"order total must not exceed ${MAX_ORDER_TOTAL}")
    return total


class Order(BaseModel):
    """Domain Entity — заказ (заголовок + позиции)"""
    id: str
    customer_id: str
    business_id: str
    items: list[OrderItem] = []
    total_amount: Decimal
    status: OrderStatus
    pin: str | None = None
    payment_id: str | None = None
    customer_push_token: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def build(
        cls,
        customer_id: str,
        business_id: str,
        lines: list[OrderLine],
        pin: str,
        payment_id: str,
        customer_push_token: Optional[str] = None,
    ) -> "Order":
        """Собирает оплаченный заказ из корзины"""
        order_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        items = [
            OrderItem(
                id=str(uuid.uuid4()),
                order_id=order_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in lines
        ]
        return cls(
            id=order_id,
            customer_id=customer_id,
            business_id=business_id,
            items=items,
            total_amount=calculate_total(lines),
            status=OrderStatus.PAID,
            pin=pin,
            payment_id=payment_id,
            customer_push_token=customer_push_token,
            created_at=now,
            updated_at=now,
        )

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def can_be_completed(self) -> bool:
        """Бизнес-правило: выдать можно только PAID или READY"""
        return self.status in REDEEMABLE_STATUSES

    def can_be_marked_ready(self) -> bool:
        """Бизнес-правило: готовым можно отметить только PAID"""
        return self.status == OrderStatus.PAID

    def can_be_cancelled(self) -> bool:
        """Бизнес-правило: без возврата денег отменить можно только PENDING"""
        return self.status == OrderStatus.PENDING

    def requires_refund_to_cancel(self) -> bool:
        return self.status in REDEEMABLE_STATUSES


class Business(BaseModel):
    """Domain Entity — точка продаж"""
    id: str
    owner_id: str
    name: str
    description: str
    address: str
    latitude: float
    longitude: float
    category: str
    push_token: str = ""
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class NearbyBusiness(BaseModel):
    business: Business
    distance_km: float


class GeoMatch(BaseModel):
    """Результат гео-индекса: ID и расстояние"""
    id: str
    distance_km: float
