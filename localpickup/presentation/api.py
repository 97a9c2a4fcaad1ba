from fastapi import APIRouter, Depends, status

from localpickup.presentation.dependencies import (
    Services, get_services, get_caller, require_customer, require_business_owner, to_http_error
)
from localpickup.presentation.schemas import (
    CreateOrderRequest, CreatedOrderResponse, OrderResponse, OrderListResponse,
    ValidatePinRequest, MarkReadyRequest, MessageResponse, ErrorResponse
)
from localpickup.application.create_order import CreateOrderUseCase, CreateOrderDTO
from localpickup.application.get_order import GetOrderUseCase, ListCustomerOrdersUseCase
from localpickup.application.validate_pin import ValidatePinUseCase, ValidatePinDTO
from localpickup.application.mark_ready import MarkOrderReadyUseCase, MarkOrderReadyDTO
from localpickup.application.cancel_order import CancelOrderUseCase
from localpickup.application.businesses import AuthorizeBusinessOwnerUseCase
from localpickup.application.notifications import NotifyNewOrderUseCase, NotifyOrderReadyUseCase
from localpickup.domain.models import Caller, OrderLine
from localpickup.domain.exceptions import DomainException

router = APIRouter()


# Фабрики для создания use cases
def get_create_order_use_case(services: Services = Depends(get_services)):
    return CreateOrderUseCase(
        services.unit_of_work,
        services.payment_gateway,
        services.pin_cache,
        services.dispatcher,
        NotifyNewOrderUseCase(services.unit_of_work, services.notification_sink),
        pin_ttl_seconds=services.pin_ttl_seconds,
    )


def get_get_order_use_case(services: Services = Depends(get_services)):
    return GetOrderUseCase(services.unit_of_work)


def get_list_orders_use_case(services: Services = Depends(get_services)):
    return ListCustomerOrdersUseCase(services.unit_of_work)


def get_validate_pin_use_case(services: Services = Depends(get_services)):
    return ValidatePinUseCase(services.unit_of_work, services.pin_cache)


def get_mark_ready_use_case(services: Services = Depends(get_services)):
    return MarkOrderReadyUseCase(
        services.unit_of_work,
        services.dispatcher,
        NotifyOrderReadyUseCase(services.notification_sink),
    )


def get_cancel_order_use_case(services: Services = Depends(get_services)):
    return CancelOrderUseCase(services.unit_of_work, services.pin_cache)


def get_authorize_owner_use_case(services: Services = Depends(get_services)):
    return AuthorizeBusinessOwnerUseCase(services.unit_of_work)


@router.post(
    "/orders",
    response_model=CreatedOrderResponse,
    responses={400: {"model": ErrorResponse}, 402: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    caller: Caller = Depends(require_customer),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Создать и оплатить заказ. PIN возвращается только здесь."""
    try:
        dto = CreateOrderDTO(
            customer_id=caller.user_id,
            business_id=request.business_id,
            items=[OrderLine(**item.model_dump()) for item in request.items],
            customer_push_token=request.customer_push_token
        )
        created = await use_case(dto)
        return CreatedOrderResponse.from_created(created.order, created.pin)
    except DomainException as e:
        raise to_http_error(e)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    caller: Caller = Depends(require_customer),
    use_case: ListCustomerOrdersUseCase = Depends(get_list_orders_use_case)
):
    """Заказы текущего клиента, новые первыми"""
    orders = await use_case(caller.user_id)
    return OrderListResponse(data=[OrderResponse.from_domain(o) for o in orders], count=len(orders))


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    try:
        order = await use_case(order_id, caller)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post(
    "/orders/{order_id}/validate-pin",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse}
    }
)
async def validate_pin(
    order_id: str,
    request: ValidatePinRequest,
    caller: Caller = Depends(require_business_owner),
    authorize_owner: AuthorizeBusinessOwnerUseCase = Depends(get_authorize_owner_use_case),
    use_case: ValidatePinUseCase = Depends(get_validate_pin_use_case)
):
    """Выдача заказа: точка проверяет PIN клиента"""
    try:
        await authorize_owner(request.business_id, caller.user_id)
        await use_case(ValidatePinDTO(order_id=order_id, pin=request.pin, business_id=request.business_id))
        return MessageResponse(message="order completed successfully")
    except DomainException as e:
        raise to_http_error(e)


@router.post(
    "/orders/{order_id}/ready",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def mark_ready(
    order_id: str,
    request: MarkReadyRequest,
    caller: Caller = Depends(require_business_owner),
    authorize_owner: AuthorizeBusinessOwnerUseCase = Depends(get_authorize_owner_use_case),
    use_case: MarkOrderReadyUseCase = Depends(get_mark_ready_use_case)
):
    try:
        await authorize_owner(request.business_id, caller.user_id)
        order = await use_case(MarkOrderReadyDTO(order_id=order_id, business_id=request.business_id))
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


@router.post(
    "/orders/{order_id}/cancel",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 501: {"model": ErrorResponse}}
)
async def cancel_order(
    order_id: str,
    caller: Caller = Depends(require_customer),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case)
):
    """Отмена. Для оплаченных заказов возврат не реализован (501)."""
    try:
        order = await use_case(order_id, caller.user_id)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise to_http_error(e)


webhooks_router = APIRouter()


@webhooks_router.post("/webhooks/stripe")
async def stripe_webhook():
    # TODO: проверять заголовок Stripe-Signature и обрабатывать payment_intent.succeeded
    return {"received": True}
