"""Cart store: per-user cart lines and their derived totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .context import UserContext, require_user
from .errors import NotFound, ValidationFailed
from .models import CartLine
from .notifications import CartWebhookNotifier, build_item_added_payload
from .repository import CartRepository, CatalogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CartLineView:
    id: str
    product_id: str
    product_name: str
    brand: str
    size: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    @property
    def key(self) -> tuple[str, int]:
        return self.product_id, self.size


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """Value copy of a cart, priced with the catalog's current prices."""

    user_id: str
    lines: tuple[CartLineView, ...]

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_price_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


def _view(line: CartLine) -> CartLineView:
    return CartLineView(
        id=line.id,
        product_id=line.product_id,
        product_name=line.product.name,
        brand=line.product.brand,
        size=line.size,
        quantity=line.quantity,
        unit_price_cents=line.product.price_cents,
    )


class CartStore:
    """Cart mutations return the resulting cart so callers never re-read a stale copy."""

    def __init__(
        self,
        repository: CartRepository,
        catalog: CatalogRepository,
        notifier: CartWebhookNotifier | None = None,
        currency: str = "INR",
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.notifier = notifier
        self.currency = currency

    async def snapshot(self, user: UserContext | None) -> CartSnapshot:
        caller = require_user(user)
        lines = await self.repository.list_lines(user_id=caller.id)
        return CartSnapshot(user_id=caller.id, lines=tuple(_view(line) for line in lines))

    async def add_line(
        self,
        user: UserContext | None,
        product_id: str,
        size: int,
        quantity: int = 1,
    ) -> CartSnapshot:
        caller = require_user(user)
        if quantity < 1:
            raise ValidationFailed({"quantity": "Quantity must be at least 1"})
        product = await self.catalog.get_active_product(product_id)
        if product is None:
            raise NotFound("Product not found")

        existing = await self.repository.find_line(user_id=caller.id, product_id=product.id, size=size)
        if existing is None:
            line = await self.repository.insert_line(
                user_id=caller.id, product=product, size=size, quantity=quantity
            )
        else:
            line = await self.repository.set_quantity(existing, quantity=existing.quantity + quantity)
        logger.info("User %s added %d x %s (size %d)", caller.id, quantity, product.id, size)

        if self.notifier is not None:
            self.notifier.submit(
                build_item_added_payload(
                    user=caller,
                    product=product,
                    size=size,
                    added_quantity=quantity,
                    resulting_quantity=line.quantity,
                    currency=self.currency,
                )
            )
        return await self.snapshot(caller)

    async def set_quantity(self, user: UserContext | None, line_id: str, quantity: int) -> CartSnapshot:
        caller = require_user(user)
        line = await self.repository.get_line(user_id=caller.id, line_id=line_id)
        if line is None:
            raise NotFound("Cart line not found")
        if quantity <= 0:
            await self.repository.delete_line(user_id=caller.id, line_id=line.id)
        else:
            await self.repository.set_quantity(line, quantity=quantity)
        return await self.snapshot(caller)

    async def remove_line(self, user: UserContext | None, line_id: str) -> CartSnapshot:
        caller = require_user(user)
        await self.repository.delete_line(user_id=caller.id, line_id=line_id)
        return await self.snapshot(caller)

    async def clear(self, user: UserContext | None) -> CartSnapshot:
        caller = require_user(user)
        removed = await self.repository.delete_all(user_id=caller.id)
        logger.info("Cleared %d cart line(s) for user %s", removed, caller.id)
        return CartSnapshot(user_id=caller.id, lines=())

    async def clear_ordered(self, user: UserContext, keys: list[tuple[str, int]]) -> int:
        """Drop the lines that were turned into an order, keeping anything added since."""

        return await self.repository.delete_matching(user_id=user.id, keys=keys)

    async def total_items(self, user: UserContext | None) -> int:
        return (await self.snapshot(user)).total_items

    async def total_price(self, user: UserContext | None) -> int:
        return (await self.snapshot(user)).total_price_cents
