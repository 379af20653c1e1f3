"""Fire-and-forget cart webhook delivery."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from .context import UserContext
from .metrics import CART_WEBHOOK_DELIVERIES_TOTAL
from .models import Product
from .pricing import to_major

logger = logging.getLogger(__name__)

ITEM_ADDED_EVENT = "item_added_to_cart"


def build_item_added_payload(
    *,
    user: UserContext,
    product: Product,
    size: int,
    added_quantity: int,
    resulting_quantity: int,
    currency: str,
) -> dict[str, Any]:
    price = to_major(product.price_cents)
    return {
        "event": ITEM_ADDED_EVENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "user": {"id": user.id, "email": user.email},
        "product": {
            "id": product.id,
            "name": product.name,
            "brand": product.brand,
            "price": str(price),
        },
        "cartItem": {"quantity": resulting_quantity, "size": size},
        "message": (
            f"Customer {user.email or user.id} added {added_quantity} x {product.name} (Size: {size}) to cart. "
            f"Total quantity for this item: {resulting_quantity}. Product ID: {product.id}, "
            f"Brand: {product.brand}, Price: {currency} {price}"
        ),
    }


class CartWebhookNotifier:
    """Posts cart events to an external webhook on detached tasks.

    Delivery failures are logged and counted; they never propagate to the
    cart operation that triggered them and are not retried.
    """

    def __init__(self, client: httpx.AsyncClient | None, url: str | None) -> None:
        self._client = client
        self._url = url
        self._pending: set[asyncio.Task[None]] = set()

    def submit(self, payload: dict[str, Any]) -> asyncio.Task[None] | None:
        if self._client is None or not self._url:
            logger.debug("Cart webhook disabled; dropping %s", payload.get("event"))
            return None
        task = asyncio.create_task(self._deliver(self._client, self._url, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, client: httpx.AsyncClient, url: str, payload: dict[str, Any]) -> None:
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            CART_WEBHOOK_DELIVERIES_TOTAL.labels(outcome="failed").inc()
            logger.warning("Cart webhook delivery failed for %s: %s", payload.get("event"), exc)
            return
        except Exception:
            CART_WEBHOOK_DELIVERIES_TOTAL.labels(outcome="failed").inc()
            logger.exception("Unexpected error delivering cart webhook %s", payload.get("event"))
            return
        CART_WEBHOOK_DELIVERIES_TOTAL.labels(outcome="delivered").inc()
        logger.info("Cart webhook delivered for %s", payload.get("event"))

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
