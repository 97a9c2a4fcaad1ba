import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from localpickup.domain.models import Business, GeoMatch, OrderLine
from localpickup.domain.exceptions import PaymentFailedError, PinCacheError, GeoIndexError, NotificationError
from localpickup.application.interfaces import (
    OrderRepository, BusinessRepository, PaymentGateway, PinCache, GeoIndex, NotificationSink
)
from localpickup.application.notifications import NotificationDispatcher, NotifyNewOrderUseCase
from localpickup.application.create_order import CreateOrderUseCase, CreateOrderDTO


CUSTOMER_ID = "customer-1"
OWNER_ID = "owner-1"
BUSINESS_ID = "business-1"


# ---------------------------------------------------------------------------
# In-memory реализации портов
# ---------------------------------------------------------------------------

class InMemoryOrderRepository(OrderRepository):
    def __init__(self, uow, staged):
        self._uow = uow
        self._staged = staged

    async def get_by_id(self, order_id):
        # Отдаем управление, чтобы параллельные корутины чередовались
        await asyncio.sleep(0)
        order = self._uow.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def create(self, order):
        if self._uow.fail_create:
            raise RuntimeError("database is down")
        self._staged.append(("orders", order.model_copy(deep=True)))

    async def update_status_if_current(self, order_id, expected, status):
        order = self._uow.orders.get(order_id)
        if not order or order.status not in set(expected):
            return False
        self._uow.orders[order_id] = order.model_copy(update={"status": status})
        return True

    async def list_by_customer(self, customer_id):
        orders = [o for o in self._uow.orders.values() if o.customer_id == customer_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [o.model_copy(update={"items": []}) for o in orders]


class InMemoryBusinessRepository(BusinessRepository):
    def __init__(self, uow, staged):
        self._uow = uow
        self._staged = staged

    async def get_by_id(self, business_id):
        return self._uow.businesses.get(business_id)

    async def get_by_ids(self, business_ids):
        return [self._uow.businesses[i] for i in business_ids if i in self._uow.businesses]

    async def create(self, business):
        self._staged.append(("businesses", business))


class InMemoryUnitOfWork:
    """Записи create применяются только на commit, условные обновления сразу"""

    def __init__(self):
        self.orders = {}
        self.businesses = {}
        self.fail_create = False
        self.commits = 0

    @asynccontextmanager
    async def __call__(self):
        yield _InMemoryUnitOfWorkImpl(self)

    def add_business(self, business: Business):
        self.businesses[business.id] = business


class _InMemoryUnitOfWorkImpl:
    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow
        self._staged = []
        self.orders = InMemoryOrderRepository(uow, self._staged)
        self.businesses = InMemoryBusinessRepository(uow, self._staged)

    async def commit(self):
        for table, entity in self._staged:
            getattr(self._uow, table)[entity.id] = entity
        self._staged.clear()
        self._uow.commits += 1

    async def rollback(self):
        self._staged.clear()


class FakePaymentGateway(PaymentGateway):
    def __init__(self, minimum_amount: int = 50):
        self._minimum_amount = minimum_amount
        self.calls = []
        self.fail = False

    @property
    def minimum_amount(self) -> int:
        return self._minimum_amount

    async def charge(self, amount_minor_units, idempotency_key):
        self.calls.append((amount_minor_units, idempotency_key))
        if self.fail:
            raise PaymentFailedError("card declined")
        return f"pi_test_{len(self.calls)}"


class FakePinCache(PinCache):
    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.fail_set = False
        self.fail_get = False
        self.fail_delete = False

    async def set(self, order_id, pin, ttl_seconds):
        if self.fail_set:
            raise PinCacheError("failed to cache PIN: connection refused")
        self.data[order_id] = pin
        self.ttls[order_id] = ttl_seconds

    async def get(self, order_id):
        if self.fail_get:
            raise PinCacheError("failed to verify PIN: timeout")
        return self.data.get(order_id)

    async def delete(self, order_id):
        if self.fail_delete:
            raise PinCacheError("failed to delete PIN: timeout")
        self.data.pop(order_id, None)


class FakeGeoIndex(GeoIndex):
    def __init__(self):
        self.locations = {}
        self.fail_add = False
        self.fail_search = False

    async def add(self, business_id, latitude, longitude):
        if self.fail_add:
            raise GeoIndexError("failed to index business location: connection refused")
        self.locations[business_id] = (latitude, longitude)

    async def search(self, latitude, longitude, radius_km):
        if self.fail_search:
            raise GeoIndexError("failed to search nearby businesses: timeout")
        matches = []
        for business_id, (lat, lng) in self.locations.items():
            distance = _haversine_km(latitude, longitude, lat, lng)
            if distance <= radius_km:
                matches.append(GeoMatch(id=business_id, distance_km=round(distance, 4)))
        return sorted(matches, key=lambda m: m.distance_km)


def _haversine_km(lat1, lng1, lat2, lng2):
    r = 6371.0
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lng2 - lng1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * r * math.asin(math.sqrt(a))


class RecordingNotificationSink(NotificationSink):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, token, title, body, data):
        if self.fail:
            raise NotificationError("push gateway unavailable")
        self.sent.append({"token": token, "title": title, "body": body, "data": data})


# ---------------------------------------------------------------------------
# Фикстуры
# ---------------------------------------------------------------------------

def make_business(**overrides) -> Business:
    now = datetime.now(timezone.utc)
    fields = dict(
        id=BUSINESS_ID,
        owner_id=OWNER_ID,
        name="Corner Bakery",
        description="Fresh bread",
        address="1 Main St",
        latitude=40.0,
        longitude=-3.0,
        category="bakery",
        push_token="business-device-token",
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return Business(**fields)


@pytest.fixture
def uow():
    unit_of_work = InMemoryUnitOfWork()
    unit_of_work.add_business(make_business())
    return unit_of_work


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def pin_cache():
    return FakePinCache()


@pytest.fixture
def geo_index():
    return FakeGeoIndex()


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def dispatcher():
    return NotificationDispatcher()


@pytest.fixture
def cart():
    return [
        OrderLine(product_name="widget", quantity=2, unit_price=Decimal("9.99")),
        OrderLine(product_name="gadget", quantity=1, unit_price=Decimal("5.00")),
    ]


@pytest.fixture
def create_order(uow, payment_gateway, pin_cache, dispatcher, sink):
    return CreateOrderUseCase(
        uow,
        payment_gateway,
        pin_cache,
        dispatcher,
        NotifyNewOrderUseCase(uow, sink),
    )


@pytest.fixture
def place_order(create_order, cart):
    """Создает оплаченный заказ и возвращает CreatedOrder"""
    async def _place(customer_id=CUSTOMER_ID, business_id=BUSINESS_ID, customer_push_token=None):
        return await create_order(CreateOrderDTO(
            customer_id=customer_id,
            business_id=business_id,
            items=cart,
            customer_push_token=customer_push_token,
        ))
    return _place


@pytest.fixture
def services(uow, payment_gateway, pin_cache, geo_index, sink, dispatcher):
    from localpickup.presentation.dependencies import Services
    return Services(
        unit_of_work=uow,
        payment_gateway=payment_gateway,
        pin_cache=pin_cache,
        geo_index=geo_index,
        notification_sink=sink,
        dispatcher=dispatcher,
    )


@pytest.fixture
async def client(services):
    from localpickup.main import create_app
    app = create_app(services)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
