"""HTTP routes for payment attempts on an existing order."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..checkout import CheckoutService
from ..context import UserContext
from ..dependencies import get_checkout_service, get_order_lifecycle, get_user_context, get_verifier
from ..errors import CheckoutError
from ..orders import OrderLifecycle
from ..schemas import (
    OrderResponse,
    PaymentFailureReport,
    PaymentIntentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from ..verifier import PaymentVerifier
from .errors import http_error
from .orders import serialize_intent, serialize_order

router = APIRouter(prefix="/orders/{order_id}/payments", tags=["payments"])


@router.post("/intent", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_intent(
    order_id: str,
    user: UserContext | None = Depends(get_user_context),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    service: CheckoutService = Depends(get_checkout_service),
) -> PaymentIntentResponse:
    try:
        order = await lifecycle.get_owned(user, order_id)
        intent = await service.retry_intent(user, order)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return PaymentIntentResponse.model_validate(serialize_intent(intent))


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    order_id: str,
    payload: VerifyPaymentRequest,
    user: UserContext | None = Depends(get_user_context),
    verifier: PaymentVerifier = Depends(get_verifier),
) -> VerifyPaymentResponse:
    try:
        result = await verifier.verify(user, order_id, payload)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return VerifyPaymentResponse.model_validate(
        {
            "success": True,
            "orderId": result.order.id,
            "status": result.order.status,
            "alreadyConfirmed": result.already_confirmed,
        }
    )


@router.post("/failure", response_model=OrderResponse)
async def report_failure(
    order_id: str,
    payload: PaymentFailureReport,
    user: UserContext | None = Depends(get_user_context),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    try:
        order = await lifecycle.report_failure(user, order_id, payload)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return OrderResponse.model_validate(serialize_order(order))
