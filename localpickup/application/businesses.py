import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel

from localpickup.domain.models import Business, NearbyBusiness
from localpickup.domain.exceptions import BusinessNotFoundError, BusinessAccessDeniedError, GeoIndexError
from localpickup.application.interfaces import GeoIndex


logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 5.0


class RegisterBusinessDTO(BaseModel):
    owner_id: str
    name: str
    description: str
    address: str
    latitude: float
    longitude: float
    category: str
    push_token: str = ""


class NearbyQueryDTO(BaseModel):
    latitude: float
    longitude: float
    radius_km: Optional[float] = None
    category: Optional[str] = None


class RegisterBusinessUseCase:
    def __init__(self, unit_of_work, geo_index: GeoIndex):
        self._uow = unit_of_work
        self._geo = geo_index

    async def __call__(self, dto: RegisterBusinessDTO) -> Business:
        now = datetime.now(timezone.utc)
        business = Business(
            id=str(uuid.uuid4()),
            is_active=True,
            created_at=now,
            updated_at=now,
            **dto.model_dump(),
        )
        async with self._uow() as uow:
            await uow.businesses.create(business)
            await uow.commit()
        logger.info(f"Точка {business.id} зарегистрирована владельцем {dto.owner_id}")

        # Гео-индекс можно перестроить позже, регистрацию не блокируем
        try:
            await self._geo.add(business.id, business.latitude, business.longitude)
        except GeoIndexError as e:
            logger.warning(f"Точка {business.id} не добавлена в гео-индекс: {e}")

        return business


class GetBusinessUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, business_id: str) -> Business:
        async with self._uow() as uow:
            business = await uow.businesses.get_by_id(business_id)
        if not business:
            raise BusinessNotFoundError(f"business {business_id} not found")
        return business


class AuthorizeBusinessOwnerUseCase:
    """Проверяет, что точка принадлежит вызывающему владельцу"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, business_id: str, owner_id: str) -> Business:
        async with self._uow() as uow:
            business = await uow.businesses.get_by_id(business_id)
        if not business:
            raise BusinessNotFoundError(f"business {business_id} not found")
        if business.owner_id != owner_id:
            raise BusinessAccessDeniedError("business does not belong to you")
        return business


class FindNearbyBusinessesUseCase:
    def __init__(self, unit_of_work, geo_index: GeoIndex):
        self._uow = unit_of_work
        self._geo = geo_index

    async def __call__(self, query: NearbyQueryDTO) -> list[NearbyBusiness]:
        radius = query.radius_km if query.radius_km and query.radius_km > 0 else DEFAULT_RADIUS_KM

        matches = await self._geo.search(query.latitude, query.longitude, radius)
        if not matches:
            return []

        async with self._uow() as uow:
            businesses = await uow.businesses.get_by_ids([m.id for m in matches])
        by_id = {b.id: b for b in businesses}

        # Порядок по расстоянию из гео-индекса
        result = []
        for match in matches:
            business = by_id.get(match.id)
            if not business or not business.is_active:
                continue
            if query.category and business.category != query.category:
                continue
            result.append(NearbyBusiness(business=business, distance_km=match.distance_km))
        return result
