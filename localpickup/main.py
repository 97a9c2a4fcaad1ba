import logging
import sys
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI

from localpickup.config import settings
from localpickup.presentation.api import router as orders_router, webhooks_router
from localpickup.presentation.businesses_api import router as businesses_router
from localpickup.presentation.dependencies import Services
from localpickup.application.notifications import NotificationDispatcher

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def build_services() -> Services:
    """Реальные зависимости: Postgres, Redis, Stripe, push-gateway"""
    from localpickup.database import AsyncSessionLocal, engine
    from localpickup.infrastructure.unit_of_work import UnitOfWork
    from localpickup.infrastructure.redis_store import create_redis_client, RedisPinCache, RedisGeoIndex
    from localpickup.infrastructure.payment_gateway import create_payment_gateway
    from localpickup.infrastructure.notification_sink import HTTPPushNotificationSink

    redis_client = create_redis_client(settings.REDIS_URL)

    async def close():
        await redis_client.aclose()
        await engine.dispose()

    return Services(
        unit_of_work=UnitOfWork(AsyncSessionLocal),
        payment_gateway=create_payment_gateway(settings.payment_gateway),
        pin_cache=RedisPinCache(redis_client),
        geo_index=RedisGeoIndex(redis_client),
        notification_sink=HTTPPushNotificationSink(settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN),
        dispatcher=NotificationDispatcher(),
        pin_ttl_seconds=settings.PIN_TTL_SECONDS,
        api_token=settings.API_TOKEN,
        close=close,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
    logger.info("Сервис заказов запущен")

    yield

    logger.info("Приложение останавливается...")
    services: Services = app.state.services
    await services.dispatcher.drain()
    if services.close:
        await services.close()


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="Local Pickup",
        description="Заказы с самовывозом и выдачей по PIN",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.services = services

    app.include_router(orders_router, prefix="/api/v1")
    app.include_router(businesses_router, prefix="/api/v1")
    app.include_router(webhooks_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "time": datetime.now(timezone.utc)}

    return app


app = create_app()
