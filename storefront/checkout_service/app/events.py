"""Event publishing helpers for the checkout service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from storefront.common.messaging import EventProducer, envelope

from .models import Order
from .pricing import to_major

ORDER_CREATED_TOPIC = "order.created.v1"
ORDER_STATUS_CHANGED_TOPIC = "order.status.changed.v1"
ORDER_CONFIRMED_TOPIC = "order.confirmed.v1"


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _order_payload(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "status": order.status,
        "currency": order.currency,
        "total": str(to_major(order.total_cents)),
        "totalMinor": order.total_cents,
        "gatewayOrderId": order.gateway_order_id,
        "gatewayPaymentId": order.gateway_payment_id,
        "updatedAt": _iso(order.updated_at),
    }


class OrderEventPublisher:
    """Publishes order lifecycle events through the configured producer."""

    def __init__(self, producer: EventProducer | None) -> None:
        self._producer = producer

    async def _emit(self, topic: str, payload: dict[str, Any]) -> None:
        if self._producer is None or not self._producer.connected:
            return
        await self._producer.send(topic, envelope(topic, payload))

    async def order_created(self, order: Order) -> None:
        await self._emit(ORDER_CREATED_TOPIC, {"order": _order_payload(order)})

    async def status_changed(self, order: Order, previous_status: str) -> None:
        await self._emit(
            ORDER_STATUS_CHANGED_TOPIC,
            {
                "order": _order_payload(order),
                "previousStatus": previous_status,
                "currentStatus": order.status,
            },
        )
        if order.status == "confirmed":
            await self._emit(ORDER_CONFIRMED_TOPIC, {"order": _order_payload(order)})
