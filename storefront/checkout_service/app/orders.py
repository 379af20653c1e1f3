"""Order materialization and status lifecycle."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal

from .cart import CartStore
from .context import UserContext, require_user
from .errors import EmptyCart, InvalidTransition, NotFound, ValidationFailed
from .events import OrderEventPublisher
from .metrics import (
    CHECKOUT_ORDERS_CREATED_TOTAL,
    CHECKOUT_VALIDATION_FAILURES_TOTAL,
    ORDER_TRANSITIONS_TOTAL,
)
from .models import Order
from .pricing import line_subtotal, order_amounts
from .repository import OrderRepository
from .schemas import CheckoutRequest, PaymentFailureReport
from .state_machine import OrderStatus, TransitionCause, ensure_transition, sources_for
from .validation import validate_checkout_addresses

logger = logging.getLogger(__name__)


class OrderMaterializer:
    """Turns the caller's cart into a pending order with price-frozen lines.

    The cart is left untouched; it is cleared only once a payment intent
    exists for the new order.
    """

    def __init__(
        self,
        repository: OrderRepository,
        carts: CartStore,
        *,
        tax_rate: Decimal,
        currency: str,
    ) -> None:
        self.repository = repository
        self.carts = carts
        self.tax_rate = tax_rate
        self.currency = currency

    async def materialize(self, user: UserContext | None, payload: CheckoutRequest) -> Order:
        caller = require_user(user)
        snapshot = await self.carts.snapshot(caller)
        if snapshot.is_empty:
            raise EmptyCart("Cart is empty")

        try:
            shipping, billing = validate_checkout_addresses(payload)
        except ValidationFailed as exc:
            CHECKOUT_VALIDATION_FAILURES_TOTAL.inc()
            logger.info("Checkout rejected for user %s: %s", caller.id, sorted(exc.errors))
            raise

        subtotal = line_subtotal((line.quantity, line.unit_price_cents) for line in snapshot.lines)
        amounts = order_amounts(subtotal, self.tax_rate)
        order = await self.repository.create_order(
            user_id=caller.id,
            currency=self.currency,
            subtotal_cents=amounts.subtotal_cents,
            tax_cents=amounts.tax_cents,
            total_cents=amounts.total_cents,
            shipping_address=shipping,
            billing_address=billing,
            lines=[
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "size": line.size,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                }
                for line in snapshot.lines
            ],
        )
        await self.repository.add_event(order, event_type="created", payload=OrderStatus.PENDING.value)
        CHECKOUT_ORDERS_CREATED_TOTAL.inc()
        logger.info(
            "Materialized order %s for user %s (%d line(s), total %d %s)",
            order.id,
            caller.id,
            len(order.lines),
            order.total_cents,
            order.currency,
        )
        return order


@dataclass(frozen=True)
class AppliedTransition:
    order: Order
    previous_status: str


class OrderLifecycle:
    """Applies status transitions as compare-and-set updates and records them."""

    def __init__(self, repository: OrderRepository, publisher: OrderEventPublisher | None = None) -> None:
        self.repository = repository
        self.publisher = publisher

    async def get_owned(self, user: UserContext | None, order_id: str) -> Order:
        caller = require_user(user)
        order = await self.repository.get_order(order_id, user_id=caller.id)
        if order is None:
            raise NotFound("Order not found")
        return order

    async def apply(
        self,
        order: Order,
        target: OrderStatus,
        cause: TransitionCause,
        *,
        values: dict[str, object] | None = None,
        detail: dict[str, object] | None = None,
    ) -> AppliedTransition | None:
        """Stage ``order -> target``; ``None`` when a concurrent writer moved the order first.

        Nothing is committed or published here; call :meth:`complete` once the
        surrounding unit of work is ready.
        """

        previous = order.status
        ensure_transition(previous, target, cause)
        applied = await self.repository.transition(
            order.id,
            from_statuses=[status.value for status in sources_for(target)],
            to_status=target.value,
            values=values,
        )
        if not applied:
            return None
        await self.repository.add_event(
            order,
            event_type="status_changed",
            payload=json.dumps(
                {"from": previous, "to": target.value, "cause": cause.value, **(detail or {})},
                sort_keys=True,
            ),
        )
        refreshed = await self.repository.get_order(order.id)
        if refreshed is None:
            raise NotFound("Order not found")
        ORDER_TRANSITIONS_TOTAL.labels(status=target.value).inc()
        logger.info("Order %s moved %s -> %s (%s)", order.id, previous, target.value, cause.value)
        return AppliedTransition(order=refreshed, previous_status=previous)

    async def complete(self, transition: AppliedTransition) -> None:
        await self.repository.commit()
        if self.publisher is not None:
            await self.publisher.status_changed(transition.order, transition.previous_status)

    async def cancel(self, user: UserContext | None, order_id: str) -> Order:
        order = await self.get_owned(user, order_id)
        transition = await self.apply(order, OrderStatus.CANCELLED, TransitionCause.USER_CANCELLED)
        if transition is None:
            current = await self.get_owned(user, order_id)
            raise InvalidTransition(current.status, OrderStatus.CANCELLED.value)
        for attempt in transition.order.attempts:
            if attempt.status == "created":
                await self.repository.set_attempt_status(attempt, status="cancelled")
        await self.complete(transition)
        return transition.order

    async def report_failure(
        self,
        user: UserContext | None,
        order_id: str,
        report: PaymentFailureReport,
    ) -> Order:
        """Record a provider-reported payment failure against one attempt."""

        order = await self.get_owned(user, order_id)
        attempt = await self.repository.find_attempt(order, gateway_order_id=report.gateway_order_id)
        if attempt is None:
            raise NotFound("Payment attempt not found")
        if order.status == OrderStatus.FAILED.value:
            await self.repository.set_attempt_status(attempt, status="failed")
            return order

        detail = {"gatewayOrderId": attempt.gateway_order_id, "code": report.code, "description": report.description}
        transition = await self.apply(order, OrderStatus.FAILED, TransitionCause.GATEWAY_FAILURE, detail=detail)
        if transition is None:
            current = await self.get_owned(user, order_id)
            raise InvalidTransition(current.status, OrderStatus.FAILED.value)
        await self.repository.set_attempt_status(attempt, status="failed")
        logger.warning(
            "Payment failed for order %s attempt %d: %s %s",
            order.id,
            attempt.attempt_number,
            report.code,
            report.description,
        )
        await self.complete(transition)
        return transition.order
