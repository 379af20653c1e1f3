"""Checkout orchestration: order first, then the payment intent, then the cart."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .cart import CartStore
from .context import UserContext, require_user
from .errors import NotFound
from .events import OrderEventPublisher
from .models import Order
from .orders import OrderMaterializer
from .payments import PaymentIntent, PaymentIntentService
from .repository import OrderRepository
from .schemas import CheckoutRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    order: Order
    intent: PaymentIntent


class CheckoutService:
    def __init__(
        self,
        repository: OrderRepository,
        carts: CartStore,
        materializer: OrderMaterializer,
        intents: PaymentIntentService,
        publisher: OrderEventPublisher | None = None,
    ) -> None:
        self.repository = repository
        self.carts = carts
        self.materializer = materializer
        self.intents = intents
        self.publisher = publisher

    async def checkout(self, user: UserContext | None, payload: CheckoutRequest) -> CheckoutResult:
        """Materialize, commit, request the intent, and only then clear the ordered lines.

        Gateway errors propagate with the order id attached; the order stays
        committed and the cart is left as it was so the caller can retry.
        """

        caller = require_user(user)
        order = await self.materializer.materialize(caller, payload)
        await self.repository.commit()
        if self.publisher is not None:
            await self.publisher.order_created(order)

        intent = await self.intents.request_intent(order)

        removed = await self.carts.clear_ordered(caller, [(line.product_id, line.size) for line in order.lines])
        await self.repository.commit()
        logger.info("Checkout for order %s cleared %d cart line(s)", order.id, removed)

        refreshed = await self.repository.get_order(order.id, user_id=caller.id)
        if refreshed is None:
            raise NotFound("Order not found")
        return CheckoutResult(order=refreshed, intent=intent)

    async def retry_intent(self, user: UserContext | None, order: Order) -> PaymentIntent:
        """Open another attempt for an order whose earlier attempt failed or never started.

        The cart still holds the ordered lines only when no intent was ever
        opened; later retries leave the cart alone.
        """

        caller = require_user(user)
        first_intent = not order.attempts
        intent = await self.intents.request_intent(order)
        if first_intent:
            removed = await self.carts.clear_ordered(caller, [(line.product_id, line.size) for line in order.lines])
            logger.info("First intent for order %s cleared %d cart line(s)", order.id, removed)
        await self.repository.commit()
        return intent
