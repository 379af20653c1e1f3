"""HTTP routes for the caller's orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..context import UserContext
from ..dependencies import get_order_lifecycle, get_order_repository, get_user_context
from ..errors import CheckoutError, NotAuthenticated
from ..models import Order
from ..orders import OrderLifecycle
from ..payments import PaymentIntent
from ..pricing import to_major
from ..repository import OrderRepository
from ..schemas import OrderEventResponse, OrderListResponse, OrderResponse
from ..state_machine import OrderStatus
from .errors import http_error

router = APIRouter(prefix="/orders", tags=["orders"])


def serialize_order(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "status": order.status,
        "currency": order.currency,
        "subtotal": to_major(order.subtotal_cents),
        "tax": to_major(order.tax_cents),
        "total": to_major(order.total_cents),
        "totalMinor": order.total_cents,
        "shippingAddress": order.shipping_address,
        "billingAddress": order.billing_address,
        "gatewayOrderId": order.gateway_order_id,
        "gatewayPaymentId": order.gateway_payment_id,
        "lines": [
            {
                "id": line.id,
                "productId": line.product_id,
                "productName": line.product_name,
                "size": line.size,
                "quantity": line.quantity,
                "unitPrice": to_major(line.unit_price_cents),
                "createdAt": line.created_at,
            }
            for line in order.lines
        ],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


def serialize_intent(intent: PaymentIntent) -> dict[str, object]:
    return {
        "orderId": intent.order_id,
        "attemptNumber": intent.attempt_number,
        "gatewayOrderId": intent.gateway_order_id,
        "amount": intent.amount,
        "currency": intent.currency,
        "keyId": intent.key_id,
        "storeName": intent.store_name,
        "scriptUrl": intent.script_url,
    }


@router.get("", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    user: UserContext | None = Depends(get_user_context),
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderListResponse:
    if user is None:
        raise http_error(NotAuthenticated("User must be authenticated"))
    orders, total = await repository.list_orders(
        user_id=user.id,
        status=status_filter.value if status_filter is not None else None,
        limit=limit,
        offset=offset,
    )
    items = [OrderResponse.model_validate(serialize_order(order)) for order in orders]
    return OrderListResponse(items=items, total=total)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user: UserContext | None = Depends(get_user_context),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    try:
        order = await lifecycle.get_owned(user, order_id)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return OrderResponse.model_validate(serialize_order(order))


@router.get("/{order_id}/events", response_model=list[OrderEventResponse])
async def get_order_events(
    order_id: str,
    user: UserContext | None = Depends(get_user_context),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> list[OrderEventResponse]:
    try:
        order = await lifecycle.get_owned(user, order_id)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return [OrderEventResponse.model_validate(event) for event in order.events]


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    user: UserContext | None = Depends(get_user_context),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    try:
        order = await lifecycle.cancel(user, order_id)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return OrderResponse.model_validate(serialize_order(order))
