from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.checkout_service.app.main import create_app
from storefront.common import StorefrontSettings


def _settings(tmp_path: Path, **overrides) -> StorefrontSettings:
    return StorefrontSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'health.db'}", **overrides)


@pytest.mark.asyncio
@pytest.mark.parametrize("enable_metrics", [True, False])
async def test_health_endpoint_returns_ok(tmp_path: Path, enable_metrics: bool) -> None:
    app = create_app(_settings(tmp_path, enable_metrics=enable_metrics))

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
            metrics = await client.get("/metrics")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert metrics.status_code == (200 if enable_metrics else 404)


@pytest.mark.asyncio
async def test_metrics_expose_checkout_counters(tmp_path: Path) -> None:
    app = create_app(_settings(tmp_path, enable_metrics=True))

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/metrics")

    assert "checkout_orders_created_total" in response.text
    assert "payment_verifications_total" in response.text


@pytest.mark.asyncio
async def test_payment_routes_report_unconfigured_gateway(tmp_path: Path) -> None:
    app = create_app(_settings(tmp_path, gateway_key_id="", enable_metrics=False))

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/orders/0b8f6f0e-2c55-4d3a-9f38-5b5f3c1a2e7d/payments/intent",
                headers={"X-User-Id": "user-1"},
            )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_readiness_reports_each_dependency(tmp_path: Path) -> None:
    unconfigured = create_app(_settings(tmp_path, gateway_key_id="", enable_metrics=False))
    async with lifespan(unconfigured):
        async with AsyncClient(transport=ASGITransport(app=unconfigured), base_url="http://test") as client:
            degraded = await client.get("/health/ready")

    configured = create_app(
        _settings(tmp_path, gateway_key_id="rzp_key", gateway_key_secret="rzp_secret", enable_metrics=False)
    )
    async with lifespan(configured):
        async with AsyncClient(transport=ASGITransport(app=configured), base_url="http://test") as client:
            ready = await client.get("/health/ready")

    assert degraded.status_code == 503
    assert degraded.json() == {"status": "degraded", "database": "ok", "payments": "not_configured"}
    assert ready.status_code == 200
    assert ready.json() == {"status": "ok", "database": "ok", "payments": "ok"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
