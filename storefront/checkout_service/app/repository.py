"""Data access helpers for the checkout service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import Select, and_, delete, func, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import CartLine, Order, OrderEvent, OrderLine, PaymentAttempt, Product


class CatalogRepository:
    """Lookups against the catalog collaborator."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_active_product(self, product_id: str) -> Product | None:
        result = await self.session.execute(
            select(Product).where(Product.id == product_id, Product.is_active.is_(True))
        )
        return result.scalar_one_or_none()


class CartRepository:
    """Persistence helpers for per-user cart lines."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_lines(self, *, user_id: str) -> list[CartLine]:
        result = await self.session.execute(
            select(CartLine)
            .where(CartLine.user_id == user_id)
            .order_by(CartLine.created_at, CartLine.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_line(self, *, user_id: str, product_id: str, size: int) -> CartLine | None:
        result = await self.session.execute(
            select(CartLine).where(
                CartLine.user_id == user_id,
                CartLine.product_id == product_id,
                CartLine.size == size,
            )
        )
        return result.scalar_one_or_none()

    async def get_line(self, *, user_id: str, line_id: str) -> CartLine | None:
        result = await self.session.execute(
            select(CartLine).where(CartLine.id == line_id, CartLine.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def insert_line(self, *, user_id: str, product: Product, size: int, quantity: int) -> CartLine:
        line = CartLine(user_id=user_id, product_id=product.id, size=size, quantity=quantity)
        line.product = product
        self.session.add(line)
        await self.session.flush()
        await self.session.refresh(line, attribute_names=["created_at", "updated_at"])
        return line

    async def set_quantity(self, line: CartLine, *, quantity: int) -> CartLine:
        line.quantity = quantity
        await self.session.flush()
        await self.session.refresh(line, attribute_names=["updated_at"])
        return line

    async def delete_line(self, *, user_id: str, line_id: str) -> int:
        result = await self.session.execute(
            delete(CartLine).where(CartLine.id == line_id, CartLine.user_id == user_id)
        )
        return result.rowcount or 0

    async def delete_all(self, *, user_id: str) -> int:
        result = await self.session.execute(delete(CartLine).where(CartLine.user_id == user_id))
        return result.rowcount or 0

    async def delete_matching(self, *, user_id: str, keys: Iterable[tuple[str, int]]) -> int:
        """Delete the caller's lines whose ``(product_id, size)`` is in ``keys``."""

        wanted = list(keys)
        if not wanted:
            return 0
        result = await self.session.execute(
            delete(CartLine).where(
                CartLine.user_id == user_id,
                tuple_(CartLine.product_id, CartLine.size).in_(wanted),
            )
        )
        return result.rowcount or 0


class OrderRepository:
    """Persistence helpers for orders, their lines, attempts and audit events."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_order(
        self,
        *,
        user_id: str,
        currency: str,
        subtotal_cents: int,
        tax_cents: int,
        total_cents: int,
        shipping_address: dict[str, str],
        billing_address: dict[str, str],
        lines: list[dict[str, object]],
    ) -> Order:
        """Stage the header and every line in one flush; nothing is visible until commit."""

        order = Order(
            user_id=user_id,
            currency=currency,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            total_cents=total_cents,
            shipping_address=shipping_address,
            billing_address=billing_address,
        )
        order.lines = [OrderLine(position=index, **entry) for index, entry in enumerate(lines)]
        order.attempts = []
        order.events = []
        self.session.add(order)
        await self.session.flush()
        await self.session.refresh(order, attribute_names=["status", "created_at", "updated_at"])
        return order

    async def get_order(self, order_id: str, *, user_id: str | None = None) -> Order | None:
        query = select(Order).where(Order.id == order_id)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        *,
        user_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Order], int]:
        filters = [Order.user_id == user_id]
        if status is not None:
            filters.append(Order.status == status)

        base: Select[tuple[Order]] = (
            select(Order).where(and_(*filters)).order_by(Order.created_at.desc(), Order.id.desc())
        )
        count: Select[tuple[int]] = select(func.count(Order.id)).where(and_(*filters))

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(base.offset(offset).limit(limit))
        return list(result.scalars().unique()), total

    async def next_attempt_number(self, order: Order) -> int:
        result = await self.session.execute(
            select(func.max(PaymentAttempt.attempt_number)).where(PaymentAttempt.order_id == order.id)
        )
        return int(result.scalar_one_or_none() or 0) + 1

    async def add_attempt(
        self,
        order: Order,
        *,
        attempt_number: int,
        gateway_order_id: str,
        amount_cents: int,
        currency: str,
    ) -> PaymentAttempt:
        attempt = PaymentAttempt(
            order_id=order.id,
            attempt_number=attempt_number,
            gateway_order_id=gateway_order_id,
            amount_cents=amount_cents,
            currency=currency,
        )
        self.session.add(attempt)
        order.gateway_order_id = gateway_order_id
        await self.session.flush()
        await self.session.refresh(order, attribute_names=["attempts", "updated_at"])
        return attempt

    async def find_attempt(self, order: Order, *, gateway_order_id: str) -> PaymentAttempt | None:
        result = await self.session.execute(
            select(PaymentAttempt).where(
                PaymentAttempt.order_id == order.id,
                PaymentAttempt.gateway_order_id == gateway_order_id,
            )
        )
        return result.scalar_one_or_none()

    async def set_attempt_status(self, attempt: PaymentAttempt, *, status: str) -> PaymentAttempt:
        attempt.status = status
        await self.session.flush()
        return attempt

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        values: dict[str, object] | None = None,
    ) -> bool:
        """Compare-and-set the status column; ``False`` when another writer got there first."""

        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.now(timezone.utc), **(values or {}))
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def add_event(self, order: Order, *, event_type: str, payload: str) -> OrderEvent:
        entry = OrderEvent(order_id=order.id, type=event_type, payload=payload)
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def commit(self) -> None:
        await self.session.commit()
