"""Payment intent creation for existing orders."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import GatewayRejected, GatewayUnavailable, InvalidTransition
from .gateway import PaymentGateway, receipt_for
from .metrics import PAYMENT_INTENTS_TOTAL
from .models import Order
from .orders import OrderLifecycle
from .repository import OrderRepository
from .state_machine import OrderStatus, TransitionCause, is_payable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    """Fields handed to the browser; nothing here is trusted once it leaves the server."""

    order_id: str
    attempt_number: int
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str
    store_name: str
    script_url: str


class PaymentIntentService:
    """Requests a gateway intent for an order's frozen total and records the attempt."""

    def __init__(
        self,
        repository: OrderRepository,
        gateway: PaymentGateway,
        lifecycle: OrderLifecycle,
        *,
        key_id: str,
        store_name: str,
        script_url: str,
    ) -> None:
        self.repository = repository
        self.gateway = gateway
        self.lifecycle = lifecycle
        self.key_id = key_id
        self.store_name = store_name
        self.script_url = script_url

    async def request_intent(self, order: Order) -> PaymentIntent:
        """Open a new payment attempt; the order must already be durable."""

        if not is_payable(order.status):
            raise InvalidTransition(order.status, OrderStatus.CONFIRMED.value)

        attempt_number = await self.repository.next_attempt_number(order)
        try:
            gateway_order = await self.gateway.create_order(
                amount=order.total_cents,
                currency=order.currency,
                receipt=receipt_for(order.id),
                notes={"orderId": order.id, "attempt": str(attempt_number)},
            )
        except GatewayUnavailable as exc:
            PAYMENT_INTENTS_TOTAL.labels(outcome="unavailable").inc()
            logger.error("Payment intent for order %s unavailable: %s", order.id, exc)
            raise GatewayUnavailable(str(exc), order_id=order.id) from exc
        except GatewayRejected as exc:
            PAYMENT_INTENTS_TOTAL.labels(outcome="rejected").inc()
            logger.error("Payment intent for order %s rejected: %s", order.id, exc)
            if order.status == OrderStatus.PENDING.value:
                transition = await self.lifecycle.apply(
                    order,
                    OrderStatus.FAILED,
                    TransitionCause.GATEWAY_FAILURE,
                    detail={"reason": str(exc)},
                )
                if transition is not None:
                    await self.lifecycle.complete(transition)
            raise GatewayRejected(str(exc), order_id=order.id) from exc

        if gateway_order.amount != order.total_cents or gateway_order.currency != order.currency:
            PAYMENT_INTENTS_TOTAL.labels(outcome="mismatch").inc()
            logger.error(
                "Gateway order %s for order %s has %d %s, expected %d %s",
                gateway_order.id,
                order.id,
                gateway_order.amount,
                gateway_order.currency,
                order.total_cents,
                order.currency,
            )
            raise GatewayUnavailable("Payment gateway returned a mismatched amount", order_id=order.id)

        await self.repository.add_attempt(
            order,
            attempt_number=attempt_number,
            gateway_order_id=gateway_order.id,
            amount_cents=gateway_order.amount,
            currency=gateway_order.currency,
        )
        PAYMENT_INTENTS_TOTAL.labels(outcome="created").inc()
        logger.info("Opened payment attempt %d for order %s (%s)", attempt_number, order.id, gateway_order.id)
        return PaymentIntent(
            order_id=order.id,
            attempt_number=attempt_number,
            gateway_order_id=gateway_order.id,
            amount=gateway_order.amount,
            currency=gateway_order.currency,
            key_id=self.key_id,
            store_name=self.store_name,
            script_url=self.script_url,
        )
