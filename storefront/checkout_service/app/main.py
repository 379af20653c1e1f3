from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from storefront.common import (
    DEFAULT_APP_NAME,
    EventBus,
    EventProducer,
    StorefrontSettings,
    build_app,
    configure_logging,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
)

from .api.carts import router as carts_router
from .api.checkout import router as checkout_router
from .api.health import router as health_router
from .api.orders import router as orders_router
from .api.payments import router as payments_router
from .events import OrderEventPublisher
from .gateway import RazorpayGateway
from .notifications import CartWebhookNotifier

SERVICE_NAME = "Checkout Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storefront.db"


def create_app(
    settings: StorefrontSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    bus: EventBus | None = None,
) -> FastAPI:
    """Create the Checkout Service FastAPI application.

    ``transport`` replaces the network for the outbound gateway and webhook
    clients; ``bus`` selects the event bus order events are published on.
    """

    resolved_settings = settings or StorefrontSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    session_factory = get_session_factory(database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gateway: RazorpayGateway | None = None
        notifier: CartWebhookNotifier | None = None
        producer: EventProducer | None = None
        app.state.session_factory = session_factory
        try:
            if resolved_settings.gateway_key_id and resolved_settings.gateway_key_secret.get_secret_value():
                gateway = RazorpayGateway(
                    httpx.AsyncClient(timeout=resolved_settings.gateway_timeout_seconds, transport=transport),
                    key_id=resolved_settings.gateway_key_id,
                    key_secret=resolved_settings.gateway_key_secret.get_secret_value(),
                    base_url=resolved_settings.gateway_api_base_url,
                    max_attempts=resolved_settings.gateway_max_attempts,
                )
            app.state.payment_gateway = gateway

            webhook_client = None
            if resolved_settings.cart_webhook_url:
                webhook_client = httpx.AsyncClient(
                    timeout=resolved_settings.cart_webhook_timeout_seconds,
                    transport=transport,
                )
            notifier = CartWebhookNotifier(webhook_client, resolved_settings.cart_webhook_url)
            app.state.cart_notifier = notifier

            producer = EventProducer(bus=bus)
            await producer.connect()
            app.state.event_publisher = OrderEventPublisher(producer)
            yield
        finally:
            app.state.session_factory = None  # type: ignore[assignment]
            app.state.payment_gateway = None
            app.state.cart_notifier = None
            app.state.event_publisher = None
            if notifier is not None:
                await notifier.close()
            if gateway is not None:
                await gateway.close()
            if producer is not None:
                await producer.close()
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(carts_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    return app


app = create_app()
