from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from fastapi import Depends, Header, HTTPException, Request, status

from localpickup.domain.models import Caller, Role
from localpickup.domain.exceptions import (
    DomainException,
    InvalidOrderError,
    PaymentFailedError,
    OrderPersistenceError,
    PinCacheError,
    GeoIndexError,
    OrderNotFoundError,
    BusinessNotFoundError,
    OrderAccessDeniedError,
    BusinessAccessDeniedError,
    InvalidOrderStateError,
    InvalidPINError,
    CancellationNotSupportedError,
)
from localpickup.application.interfaces import PaymentGateway, PinCache, GeoIndex, NotificationSink
from localpickup.application.notifications import NotificationDispatcher


@dataclass
class Services:
    """Долгоживущие зависимости приложения (создаются в lifespan)"""
    unit_of_work: Any
    payment_gateway: PaymentGateway
    pin_cache: PinCache
    geo_index: GeoIndex
    notification_sink: NotificationSink
    dispatcher: NotificationDispatcher
    pin_ttl_seconds: int = 24 * 60 * 60
    api_token: str = ""
    close: Optional[Callable[[], Awaitable[None]]] = None


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_caller(
    services: Services = Depends(get_services),
    x_api_key: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    """Личность вызывающего приходит от gateway, токены здесь не разбираются"""
    if services.api_token and x_api_key != services.api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing caller identity")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown caller role")
    return Caller(user_id=x_user_id, role=role)


def require_role(role: Role):
    async def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"only {role.value} may perform this action"
            )
        return caller
    return dependency


require_customer = require_role(Role.CUSTOMER)
require_business_owner = require_role(Role.BUSINESS_OWNER)


_ERROR_STATUS = {
    InvalidOrderError: status.HTTP_400_BAD_REQUEST,
    InvalidPINError: status.HTTP_400_BAD_REQUEST,
    PaymentFailedError: status.HTTP_402_PAYMENT_REQUIRED,
    OrderAccessDeniedError: status.HTTP_403_FORBIDDEN,
    BusinessAccessDeniedError: status.HTTP_403_FORBIDDEN,
    OrderNotFoundError: status.HTTP_404_NOT_FOUND,
    BusinessNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidOrderStateError: status.HTTP_409_CONFLICT,
    CancellationNotSupportedError: status.HTTP_501_NOT_IMPLEMENTED,
    OrderPersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PinCacheError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    GeoIndexError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_error(error: DomainException) -> HTTPException:
    status_code = _ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=str(error))
