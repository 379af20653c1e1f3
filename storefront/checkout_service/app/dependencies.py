"""Dependency helpers for the checkout service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.common import StorefrontSettings, lifespan_session

from .cart import CartStore
from .checkout import CheckoutService
from .context import UserContext
from .events import OrderEventPublisher
from .gateway import PaymentGateway
from .notifications import CartWebhookNotifier
from .orders import OrderLifecycle, OrderMaterializer
from .payments import PaymentIntentService
from .repository import CartRepository, CatalogRepository, OrderRepository
from .verifier import PaymentVerifier


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_settings(request: Request) -> StorefrontSettings:
    return request.app.state.settings


def get_user_context(
    user_id: str | None = Header(default=None, alias="X-User-Id"),
    user_email: str | None = Header(default=None, alias="X-User-Email"),
) -> UserContext | None:
    """Resolve the caller; ``None`` is rejected by the services as unauthenticated."""

    if user_id is None or not user_id.strip():
        return None
    return UserContext(id=user_id.strip(), email=(user_email or "").strip())


def get_cart_repository(session: AsyncSession = Depends(get_session)) -> CartRepository:
    return CartRepository(session)


def get_order_repository(session: AsyncSession = Depends(get_session)) -> OrderRepository:
    return OrderRepository(session)


def get_notifier(request: Request) -> CartWebhookNotifier | None:
    return getattr(request.app.state, "cart_notifier", None)


def get_event_publisher(request: Request) -> OrderEventPublisher | None:
    return getattr(request.app.state, "event_publisher", None)


def get_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway is not configured",
        )
    return gateway


def get_cart_store(
    session: AsyncSession = Depends(get_session),
    repository: CartRepository = Depends(get_cart_repository),
    notifier: CartWebhookNotifier | None = Depends(get_notifier),
    settings: StorefrontSettings = Depends(get_settings),
) -> CartStore:
    return CartStore(
        repository,
        CatalogRepository(session),
        notifier=notifier,
        currency=settings.currency,
    )


def get_order_lifecycle(
    repository: OrderRepository = Depends(get_order_repository),
    publisher: OrderEventPublisher | None = Depends(get_event_publisher),
) -> OrderLifecycle:
    return OrderLifecycle(repository, publisher)


def get_intent_service(
    repository: OrderRepository = Depends(get_order_repository),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: StorefrontSettings = Depends(get_settings),
) -> PaymentIntentService:
    return PaymentIntentService(
        repository,
        gateway,
        lifecycle,
        key_id=settings.gateway_key_id,
        store_name=settings.store_name,
        script_url=settings.checkout_script_url,
    )


def get_checkout_service(
    repository: OrderRepository = Depends(get_order_repository),
    carts: CartStore = Depends(get_cart_store),
    intents: PaymentIntentService = Depends(get_intent_service),
    publisher: OrderEventPublisher | None = Depends(get_event_publisher),
    settings: StorefrontSettings = Depends(get_settings),
) -> CheckoutService:
    materializer = OrderMaterializer(
        repository,
        carts,
        tax_rate=settings.tax_rate,
        currency=settings.currency,
    )
    return CheckoutService(repository, carts, materializer, intents, publisher)


def get_verifier(
    repository: OrderRepository = Depends(get_order_repository),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    settings: StorefrontSettings = Depends(get_settings),
) -> PaymentVerifier:
    secret = settings.gateway_key_secret.get_secret_value()
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment verification is not configured",
        )
    return PaymentVerifier(repository, lifecycle, secret=secret)
