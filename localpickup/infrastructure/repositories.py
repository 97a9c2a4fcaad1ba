from typing import Iterable, Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from localpickup.domain.models import Order, OrderItem, OrderStatus, Business
from localpickup.infrastructure.db_schema import orders_tbl, order_items_tbl, businesses_tbl
from localpickup.application.interfaces import OrderRepository, BusinessRepository


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        if not row:
            return None

        items_result = await self._session.execute(
            select(order_items_tbl)
            .where(order_items_tbl.c.order_id == order_id)
            .order_by(order_items_tbl.c.position.asc())
        )
        items = [self._item_to_domain(item) for item in items_result.fetchall()]
        return self._to_domain(row, items)

    async def create(self, order: Order) -> None:
        """Заголовок и позиции; коммит делает unit of work"""
        await self._session.execute(
            insert(orders_tbl).values(
                id=order.id,
                customer_id=order.customer_id,
                business_id=order.business_id,
                total_amount=order.total_amount,
                status=order.status,
                pin=order.pin,
                payment_id=order.payment_id,
                customer_push_token=order.customer_push_token,
                created_at=order.created_at,
                updated_at=order.updated_at
            )
        )
        await self._session.execute(
            insert(order_items_tbl),
            [
                {
                    "id": item.id,
                    "order_id": order.id,
                    "position": position,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                for position, item in enumerate(order.items)
            ]
        )

    async def update_status_if_current(
        self, order_id: str, expected: Iterable[OrderStatus], status: OrderStatus
    ) -> bool:
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order_id,
                orders_tbl.c.status.in_(list(expected))
            )
            .values(
                status=status,
                updated_at=datetime.now(timezone.utc)
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_by_customer(self, customer_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.customer_id == customer_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row, []) for row in result.fetchall()]

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            customer_id=row.customer_id,
            business_id=row.business_id,
            items=items,
            total_amount=row.total_amount,
            status=OrderStatus(row.status),
            pin=row.pin,
            payment_id=row.payment_id,
            customer_push_token=row.customer_push_token,
            created_at=row.created_at,
            updated_at=row.updated_at
        )

    def _item_to_domain(self, row) -> OrderItem:
        return OrderItem(
            id=row.id,
            order_id=row.order_id,
            product_name=row.product_name,
            quantity=row.quantity,
            unit_price=row.unit_price
        )


class SQLAlchemyBusinessRepository(BusinessRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, business_id: str) -> Optional[Business]:
        result = await self._session.execute(
            select(businesses_tbl).where(businesses_tbl.c.id == business_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_ids(self, business_ids: List[str]) -> List[Business]:
        if not business_ids:
            return []
        result = await self._session.execute(
            select(businesses_tbl).where(businesses_tbl.c.id.in_(business_ids))
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, business: Business) -> None:
        await self._session.execute(
            insert(businesses_tbl).values(**business.model_dump())
        )

    def _to_domain(self, row) -> Business:
        return Business(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            description=row.description,
            address=row.address,
            latitude=row.latitude,
            longitude=row.longitude,
            category=row.category,
            push_token=row.push_token or "",
            is_active=row.is_active,
            created_at=row.created_at,
            updated_at=row.updated_at
        )
