from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Float, Boolean, Enum, DateTime, ForeignKey, MetaData
)
from sqlalchemy.sql import func

from localpickup.domain.models import OrderStatus

metadata = MetaData()


businesses_tbl = Table(
    "businesses",
    metadata,
    Column("id", String, primary_key=True),
    Column("owner_id", String, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("description", String, nullable=False),
    Column("address", String, nullable=False),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("category", String, nullable=False, index=True),
    Column("push_token", String, nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("customer_id", String, nullable=False, index=True),
    Column("business_id", String, ForeignKey("businesses.id"), nullable=False, index=True),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column(
        "status",
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING
    ),
    Column("pin", String(6), nullable=True),
    Column("payment_id", String, nullable=True),
    Column("customer_push_token", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("product_name", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False)
)
