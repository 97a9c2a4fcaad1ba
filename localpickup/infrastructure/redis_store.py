import logging
from typing import Optional, List
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from localpickup.domain.models import GeoMatch
from localpickup.domain.exceptions import PinCacheError, GeoIndexError
from localpickup.application.interfaces import PinCache, GeoIndex

logger = logging.getLogger(__name__)

PIN_KEY_PREFIX = "order:pin:"
BUSINESS_GEO_KEY = "businesses:geo"
NEARBY_LIMIT = 50


def create_redis_client(url: str, socket_timeout: float = 2.0) -> aioredis.Redis:
    return aioredis.from_url(
        url,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        decode_responses=True,
    )


class RedisPinCache(PinCache):
    """Теневая копия PIN с TTL. Источник истины: заказ в БД."""

    def __init__(self, client: aioredis.Redis):
        self._redis = client

    async def set(self, order_id: str, pin: str, ttl_seconds: int) -> None:
        try:
            await self._redis.set(PIN_KEY_PREFIX + order_id, pin, ex=ttl_seconds)
        except RedisError as e:
            raise PinCacheError(f"failed to cache PIN: {e}") from e

    async def get(self, order_id: str) -> Optional[str]:
        try:
            return await self._redis.get(PIN_KEY_PREFIX + order_id)
        except RedisError as e:
            raise PinCacheError(f"failed to verify PIN: {e}") from e

    async def delete(self, order_id: str) -> None:
        try:
            await self._redis.delete(PIN_KEY_PREFIX + order_id)
        except RedisError as e:
            raise PinCacheError(f"failed to delete PIN: {e}") from e


class RedisGeoIndex(GeoIndex):
    def __init__(self, client: aioredis.Redis):
        self._redis = client

    async def add(self, business_id: str, latitude: float, longitude: float) -> None:
        try:
            await self._redis.geoadd(BUSINESS_GEO_KEY, [longitude, latitude, business_id])
        except RedisError as e:
            raise GeoIndexError(f"failed to index business location: {e}") from e

    async def search(self, latitude: float, longitude: float, radius_km: float) -> List[GeoMatch]:
        """ID в радиусе, по возрастанию расстояния (GEOSEARCH, Redis >= 6.2)"""
        try:
            locations = await self._redis.geosearch(
                BUSINESS_GEO_KEY,
                longitude=longitude,
                latitude=latitude,
                radius=radius_km,
                unit="km",
                sort="ASC",
                count=NEARBY_LIMIT,
                withdist=True,
            )
        except RedisError as e:
            raise GeoIndexError(f"failed to search nearby businesses: {e}") from e
        return [GeoMatch(id=name, distance_km=float(dist)) for name, dist in locations]
