from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from localpickup.domain.models import Order, OrderStatus, REDEEMABLE_STATUSES
from localpickup.infrastructure.db_schema import metadata
from localpickup.infrastructure.unit_of_work import UnitOfWork

from conftest import BUSINESS_ID, CUSTOMER_ID, make_business


@pytest.fixture
async def sql_uow(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    unit_of_work = UnitOfWork(session_factory)

    async with unit_of_work() as uow:
        await uow.businesses.create(make_business())
        await uow.commit()

    yield unit_of_work
    await engine.dispose()


def _order(cart, **overrides) -> Order:
    order = Order.build(
        customer_id=CUSTOMER_ID, business_id=BUSINESS_ID, lines=cart, pin="012345", payment_id="pi_1"
    )
    return order.model_copy(update=overrides) if overrides else order


async def test_order_round_trip_keeps_items_and_total(sql_uow, cart):
    order = _order(cart)
    async with sql_uow() as uow:
        await uow.orders.create(order)
        await uow.commit()

    async with sql_uow() as uow:
        stored = await uow.orders.get_by_id(order.id)

    assert stored.status == OrderStatus.PAID
    assert stored.pin == "012345"
    assert stored.total_amount == Decimal("24.98")
    assert [(i.product_name, i.quantity, i.unit_price) for i in stored.items] == [
        ("widget", 2, Decimal("9.99")),
        ("gadget", 1, Decimal("5.00")),
    ]


async def test_uncommitted_order_is_rolled_back(sql_uow, cart):
    order = _order(cart)
    async with sql_uow() as uow:
        await uow.orders.create(order)

    async with sql_uow() as uow:
        assert await uow.orders.get_by_id(order.id) is None


async def test_failed_transaction_leaves_no_items(sql_uow, cart):
    order = _order(cart)
    with pytest.raises(RuntimeError):
        async with sql_uow() as uow:
            await uow.orders.create(order)
            raise RuntimeError("crash before commit")

    async with sql_uow() as uow:
        assert await uow.orders.get_by_id(order.id) is None


async def test_conditional_update_applies_once(sql_uow, cart):
    order = _order(cart)
    async with sql_uow() as uow:
        await uow.orders.create(order)
        await uow.commit()

    async with sql_uow() as uow:
        first = await uow.orders.update_status_if_current(order.id, REDEEMABLE_STATUSES, OrderStatus.COMPLETED)
        await uow.commit()
    async with sql_uow() as uow:
        second = await uow.orders.update_status_if_current(order.id, REDEEMABLE_STATUSES, OrderStatus.COMPLETED)
        await uow.commit()

    assert first is True
    assert second is False
    async with sql_uow() as uow:
        assert (await uow.orders.get_by_id(order.id)).status == OrderStatus.COMPLETED


async def test_conditional_update_unknown_order(sql_uow):
    async with sql_uow() as uow:
        assert await uow.orders.update_status_if_current("missing", {OrderStatus.PAID}, OrderStatus.READY) is False


async def test_list_by_customer_newest_first(sql_uow, cart):
    older = _order(cart)
    older = older.model_copy(update={"created_at": older.created_at - timedelta(hours=1)})
    newer = _order(cart)
    foreign = _order(cart, customer_id="someone-else")

    async with sql_uow() as uow:
        for order in (older, newer, foreign):
            await uow.orders.create(order)
        await uow.commit()

    async with sql_uow() as uow:
        orders = await uow.orders.list_by_customer(CUSTOMER_ID)

    assert [o.id for o in orders] == [newer.id, older.id]


async def test_business_lookup(sql_uow):
    async with sql_uow() as uow:
        business = await uow.businesses.get_by_id(BUSINESS_ID)
        many = await uow.businesses.get_by_ids([BUSINESS_ID, "missing"])
        none = await uow.businesses.get_by_ids([])

    assert business.push_token == "business-device-token"
    assert business.is_active is True
    assert [b.id for b in many] == [BUSINESS_ID]
    assert none == []
