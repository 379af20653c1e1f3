"""API routes for the caller's cart."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from storefront.common import StorefrontSettings

from ..cart import CartSnapshot, CartStore
from ..context import UserContext
from ..dependencies import get_cart_store, get_settings, get_user_context
from ..errors import CheckoutError
from ..pricing import estimated_tax, to_major
from ..schemas import CartLineCreate, CartLineUpdate, CartResponse, CartTotalsResponse
from .errors import http_error

router = APIRouter(prefix="/carts/me", tags=["carts"])


def _serialize_cart(snapshot: CartSnapshot, currency: str) -> dict[str, object]:
    return {
        "userId": snapshot.user_id,
        "currency": currency,
        "lines": [
            {
                "id": line.id,
                "productId": line.product_id,
                "productName": line.product_name,
                "brand": line.brand,
                "size": line.size,
                "quantity": line.quantity,
                "unitPrice": to_major(line.unit_price_cents),
                "lineTotal": to_major(line.line_total_cents),
            }
            for line in snapshot.lines
        ],
        "totalItems": snapshot.total_items,
        "totalPrice": to_major(snapshot.total_price_cents),
    }


@router.get("", response_model=CartResponse)
async def get_cart(
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
) -> CartResponse:
    try:
        snapshot = await carts.snapshot(user)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return CartResponse.model_validate(_serialize_cart(snapshot, carts.currency))


@router.post("/lines", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_line(
    payload: CartLineCreate,
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
) -> CartResponse:
    try:
        snapshot = await carts.add_line(user, payload.product_id, payload.size, payload.quantity)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return CartResponse.model_validate(_serialize_cart(snapshot, carts.currency))


@router.patch("/lines/{line_id}", response_model=CartResponse)
async def set_quantity(
    line_id: str,
    payload: CartLineUpdate,
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
) -> CartResponse:
    try:
        snapshot = await carts.set_quantity(user, line_id, payload.quantity)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return CartResponse.model_validate(_serialize_cart(snapshot, carts.currency))


@router.delete("/lines/{line_id}", response_model=CartResponse)
async def remove_line(
    line_id: str,
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
) -> CartResponse:
    try:
        snapshot = await carts.remove_line(user, line_id)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return CartResponse.model_validate(_serialize_cart(snapshot, carts.currency))


@router.delete("")
async def clear_cart(
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
) -> Response:
    try:
        await carts.clear(user)
    except CheckoutError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/totals", response_model=CartTotalsResponse)
async def get_cart_totals(
    user: UserContext | None = Depends(get_user_context),
    carts: CartStore = Depends(get_cart_store),
    settings: StorefrontSettings = Depends(get_settings),
) -> CartTotalsResponse:
    try:
        snapshot = await carts.snapshot(user)
    except CheckoutError as exc:
        raise http_error(exc) from exc

    # display-only estimate; the order total is rounded once at checkout
    tax = estimated_tax(snapshot.total_price_cents, settings.tax_rate)
    return CartTotalsResponse.model_validate(
        {
            "totalItems": snapshot.total_items,
            "subtotal": to_major(snapshot.total_price_cents),
            "estimatedTax": tax / 100,
            "estimatedTotal": (snapshot.total_price_cents + tax) / 100,
            "currency": settings.currency,
        }
    )
