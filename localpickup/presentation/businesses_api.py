from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from localpickup.presentation.dependencies import (
    Services, get_services, get_caller, require_business_owner, to_http_error
)
from localpickup.presentation.schemas import (
    CreateBusinessRequest, BusinessResponse, NearbyBusinessResponse, NearbyBusinessListResponse, ErrorResponse
)
from localpickup.application.businesses import (
    RegisterBusinessUseCase, RegisterBusinessDTO,
    GetBusinessUseCase,
    FindNearbyBusinessesUseCase, NearbyQueryDTO
)
from localpickup.domain.models import Caller
from localpickup.domain.exceptions import DomainException

router = APIRouter()


def get_register_business_use_case(services: Services = Depends(get_services)):
    return RegisterBusinessUseCase(services.unit_of_work, services.geo_index)


def get_get_business_use_case(services: Services = Depends(get_services)):
    return GetBusinessUseCase(services.unit_of_work)


def get_find_nearby_use_case(services: Services = Depends(get_services)):
    return FindNearbyBusinessesUseCase(services.unit_of_work, services.geo_index)


@router.post("/businesses", response_model=BusinessResponse, status_code=status.HTTP_201_CREATED)
async def register_business(
    request: CreateBusinessRequest,
    caller: Caller = Depends(require_business_owner),
    use_case: RegisterBusinessUseCase = Depends(get_register_business_use_case)
):
    """Регистрация точки владельцем"""
    business = await use_case(RegisterBusinessDTO(owner_id=caller.user_id, **request.model_dump()))
    return BusinessResponse.from_domain(business)


# /nearby объявлен раньше /{business_id}, иначе маршрут перехватит "nearby" как ID
@router.get(
    "/businesses/nearby",
    response_model=NearbyBusinessListResponse,
    responses={503: {"model": ErrorResponse}}
)
async def find_nearby(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius: Optional[float] = Query(default=None, gt=0),
    category: Optional[str] = None,
    caller: Caller = Depends(get_caller),
    use_case: FindNearbyBusinessesUseCase = Depends(get_find_nearby_use_case)
):
    try:
        nearby = await use_case(NearbyQueryDTO(latitude=lat, longitude=lng, radius_km=radius, category=category))
    except DomainException as e:
        raise to_http_error(e)
    return NearbyBusinessListResponse(
        data=[NearbyBusinessResponse.from_nearby(n) for n in nearby],
        count=len(nearby)
    )


@router.get(
    "/businesses/{business_id}",
    response_model=BusinessResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_business(
    business_id: str,
    caller: Caller = Depends(get_caller),
    use_case: GetBusinessUseCase = Depends(get_get_business_use_case)
):
    try:
        business = await use_case(business_id)
        return BusinessResponse.from_domain(business)
    except DomainException as e:
        raise to_http_error(e)
