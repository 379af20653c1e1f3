"""Translation of checkout domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import (
    CheckoutError,
    EmptyCart,
    GatewayRejected,
    GatewayUnavailable,
    InvalidSignature,
    InvalidTransition,
    NotAuthenticated,
    NotFound,
    PaymentConflict,
    ValidationFailed,
)
from ..verifier import GENERIC_FAILURE_MESSAGE


def http_error(exc: CheckoutError) -> HTTPException:
    if isinstance(exc, NotAuthenticated):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "X-User-Id"},
        )
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationFailed):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": exc.errors})
    if isinstance(exc, EmptyCart):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": {"cart": str(exc)}})
    if isinstance(exc, GatewayUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": "Payment gateway unavailable, please retry", "orderId": exc.order_id},
        )
    if isinstance(exc, GatewayRejected):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "orderId": exc.order_id},
        )
    if isinstance(exc, InvalidSignature):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=GENERIC_FAILURE_MESSAGE)
    if isinstance(exc, (PaymentConflict, InvalidTransition)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unexpected checkout error")
