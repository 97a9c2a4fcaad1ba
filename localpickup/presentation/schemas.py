from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from localpickup.domain.models import (
    OrderStatus, Order, Business, NearbyBusiness, MAX_LINE_QUANTITY, MAX_ORDER_TOTAL
)


class CreateOrderItemRequest(BaseModel):
    product_name: str = Field(min_length=1)
    quantity: int = Field(gt=0, le=MAX_LINE_QUANTITY)
    unit_price: Decimal = Field(gt=0, le=MAX_ORDER_TOTAL, max_digits=12, decimal_places=2)


class CreateOrderRequest(BaseModel):
    business_id: str
    items: list[CreateOrderItemRequest] = Field(min_length=1)
    customer_push_token: Optional[str] = None


class ValidatePinRequest(BaseModel):
    pin: str = Field(pattern=r"^[0-9]{6}$")
    business_id: str


class MarkReadyRequest(BaseModel):
    business_id: str


class OrderItemResponse(BaseModel):
    id: str
    product_name: str
    quantity: int
    unit_price: Decimal


class OrderResponse(BaseModel):
    """Заказ без PIN"""
    id: str
    customer_id: str
    business_id: str
    items: list[OrderItemResponse]
    total_amount: Decimal
    status: OrderStatus
    payment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order):
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            business_id=order.business_id,
            items=[
                OrderItemResponse(
                    id=item.id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            status=order.status,
            payment_id=order.payment_id,
            created_at=order.created_at,
            updated_at=order.updated_at
        )


class CreatedOrderResponse(OrderResponse):
    """Единственный ответ, в котором есть PIN"""
    pin: str

    @classmethod
    def from_created(cls, order: Order, pin: str):
        return cls(**OrderResponse.from_domain(order).model_dump(), pin=pin)


class OrderListResponse(BaseModel):
    data: list[OrderResponse]
    count: int


class MessageResponse(BaseModel):
    message: str


class CreateBusinessRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=1)
    address: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    category: str = Field(min_length=1)
    push_token: str = ""


class BusinessResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    description: str
    address: str
    latitude: float
    longitude: float
    category: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, business: Business):
        # push_token наружу не отдаем
        return cls(**business.model_dump(exclude={"push_token"}))


class NearbyBusinessResponse(BusinessResponse):
    distance_km: float

    @classmethod
    def from_nearby(cls, nearby: NearbyBusiness):
        return cls(
            **BusinessResponse.from_domain(nearby.business).model_dump(),
            distance_km=nearby.distance_km
        )


class NearbyBusinessListResponse(BaseModel):
    data: list[NearbyBusinessResponse]
    count: int


class ErrorResponse(BaseModel):
    detail: str
