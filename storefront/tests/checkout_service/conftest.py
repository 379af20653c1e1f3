import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.common import (
    EventBus,
    EventConsumer,
    StorefrontSettings,
    create_schema,
    dispose_engines,
    get_session_factory,
)
from storefront.checkout_service.app.events import (
    ORDER_CONFIRMED_TOPIC,
    ORDER_CREATED_TOPIC,
    ORDER_STATUS_CHANGED_TOPIC,
)
from storefront.checkout_service.app.main import create_app
from storefront.checkout_service.app.models import Base, Product

GATEWAY_KEY_ID = "rzp_test_key"
GATEWAY_SECRET = "test_gateway_secret"
GATEWAY_HOST = "gateway.test"
WEBHOOK_URL = "http://hooks.test/cart-events"

SHOE_X = "11111111-1111-1111-1111-111111111111"
SHOE_Y = "22222222-2222-2222-2222-222222222222"
RETIRED_SHOE = "33333333-3333-3333-3333-333333333333"


@dataclass
class FakeExternals:
    """Stands in for the payment gateway and the cart webhook."""

    gateway_requests: list[dict[str, Any]] = field(default_factory=list)
    gateway_auth: list[str | None] = field(default_factory=list)
    gateway_statuses: list[int] = field(default_factory=list)
    gateway_transport_error: bool = False
    webhook_payloads: list[dict[str, Any]] = field(default_factory=list)
    webhook_status: int = 200
    webhook_transport_error: bool = False
    _issued: int = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == GATEWAY_HOST:
            return self._gateway(request)
        if str(request.url) == WEBHOOK_URL:
            self.webhook_payloads.append(json.loads(request.content))
            if self.webhook_transport_error:
                raise httpx.ConnectError("webhook down", request=request)
            return httpx.Response(self.webhook_status, json={"ok": self.webhook_status < 400})
        return httpx.Response(404)

    def _gateway(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.gateway_requests.append(body)
        self.gateway_auth.append(request.headers.get("Authorization"))
        if self.gateway_transport_error:
            raise httpx.ConnectError("gateway down", request=request)
        if self.gateway_statuses:
            status_code = self.gateway_statuses.pop(0)
            if status_code >= 400:
                return httpx.Response(
                    status_code,
                    json={"error": {"code": "BAD_REQUEST_ERROR", "description": "Request rejected"}},
                )
        self._issued += 1
        return httpx.Response(
            200,
            json={
                "id": f"order_GW{self._issued:04d}",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )


@dataclass
class Harness:
    app: FastAPI
    client: AsyncClient
    externals: FakeExternals
    events: list[tuple[str, dict[str, Any]]]
    database_url: str

    def headers(self, user_id: str = "user-1", email: str = "buyer@example.com") -> dict[str, str]:
        return {"X-User-Id": user_id, "X-User-Email": email}

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]

    async def drain_webhooks(self) -> None:
        await self.app.state.cart_notifier.drain()


async def _seed_products(database_url: str) -> None:
    session_factory = get_session_factory(database_url)
    async with session_factory() as session:
        session.add_all(
            [
                Product(id=SHOE_X, name="Derby Classic", brand="Clarks", price_cents=1000),
                Product(id=SHOE_Y, name="Trail Runner", brand="Asics", price_cents=2499),
                Product(id=RETIRED_SHOE, name="Old Loafer", brand="Bata", price_cents=500, is_active=False),
            ]
        )
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield


def make_settings(database_url: str, **overrides: Any) -> StorefrontSettings:
    values: dict[str, Any] = {
        "app_name": "Checkout Service Test",
        "enable_metrics": False,
        "enable_tracing": False,
        "database_url": database_url,
        "gateway_key_id": GATEWAY_KEY_ID,
        "gateway_key_secret": GATEWAY_SECRET,
        "gateway_api_base_url": f"http://{GATEWAY_HOST}/v1",
        "gateway_max_attempts": 2,
        "cart_webhook_url": WEBHOOK_URL,
        "store_name": "Sole Street",
    }
    values.update(overrides)
    return StorefrontSettings(**values)


@pytest.fixture
def externals() -> FakeExternals:
    return FakeExternals()


@pytest_asyncio.fixture
async def harness(tmp_path, externals: FakeExternals):
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}"
    await create_schema(database_url, Base)
    await _seed_products(database_url)

    bus = EventBus()
    events: list[tuple[str, dict[str, Any]]] = []

    async def _record(topic: str, message: dict[str, Any]) -> None:
        events.append((topic, message))

    consumer = EventConsumer(
        [ORDER_CREATED_TOPIC, ORDER_STATUS_CHANGED_TOPIC, ORDER_CONFIRMED_TOPIC],
        _record,
        bus=bus,
    )
    await consumer.start()

    app = create_app(make_settings(database_url), transport=httpx.MockTransport(externals), bus=bus)
    async with lifespan(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield Harness(
                app=app,
                client=client,
                externals=externals,
                events=events,
                database_url=database_url,
            )
    await consumer.stop()
    await dispose_engines()
