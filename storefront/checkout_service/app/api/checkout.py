"""HTTP route that turns the caller's cart into an order with a payment intent."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..checkout import CheckoutService
from ..context import UserContext
from ..dependencies import get_checkout_service, get_user_context
from ..errors import CheckoutError
from ..schemas import CheckoutRequest, CheckoutResponse
from .errors import http_error
from .orders import serialize_intent, serialize_order

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    user: UserContext | None = Depends(get_user_context),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    try:
        result = await service.checkout(user, payload)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return CheckoutResponse.model_validate(
        {"order": serialize_order(result.order), "payment": serialize_intent(result.intent)}
    )
