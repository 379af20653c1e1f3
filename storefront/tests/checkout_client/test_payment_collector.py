import asyncio
import json
from typing import Any

import pytest
from httpx import AsyncClient, MockTransport, Request, Response

from storefront.checkout_client.api import StorefrontAPI
from storefront.checkout_client.collector import (
    PAYMENT_CANCELLED_MESSAGE,
    VERIFICATION_FAILED_MESSAGE,
    CollectorState,
    Completed,
    Dismissed,
    PaymentCollector,
    PaymentFailed,
    PaymentInProgress,
    build_widget_options,
)
from storefront.checkout_client.loader import WidgetLoader

ORDER_ID = "9a1c2f4e-0000-4000-8000-000000000001"

INTENT = {
    "orderId": ORDER_ID,
    "attemptNumber": 1,
    "gatewayOrderId": "order_GW0001",
    "amount": 2360,
    "currency": "INR",
    "keyId": "rzp_test_key",
    "storeName": "Sole Street",
    "scriptUrl": "https://checkout.test/checkout.js",
}

SHIPPING = {"name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210", "postalCode": "560001"}


class _Backend:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.verify_status = 200
        self.checkout_status = 201

    def __call__(self, request: Request) -> Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        assert request.headers["X-User-Id"] == "user-1"
        path = request.url.path
        if path == "/checkout":
            if self.checkout_status == 503:
                return Response(503, json={"detail": {"message": "Payment gateway unavailable", "orderId": ORDER_ID}})
            if self.checkout_status == 422:
                return Response(422, json={"detail": {"errors": {"shipping.phone": "Please enter a valid 10-digit phone number"}}})
            return Response(201, json={"order": {"id": ORDER_ID, "shippingAddress": SHIPPING}, "payment": INTENT})
        if path.endswith("/payments/verify"):
            if self.verify_status != 200:
                return Response(self.verify_status, json={"detail": VERIFICATION_FAILED_MESSAGE})
            return Response(200, json={"success": True, "orderId": ORDER_ID, "status": "confirmed", "alreadyConfirmed": False})
        if path.endswith("/payments/failure"):
            return Response(200, json={"id": ORDER_ID, "status": "failed"})
        if path.endswith("/payments/intent"):
            return Response(201, json={**INTENT, "attemptNumber": 2, "gatewayOrderId": "order_GW0002"})
        if path.endswith("/cancel"):
            return Response(200, json={"id": ORDER_ID, "status": "cancelled"})
        if path == f"/orders/{ORDER_ID}":
            return Response(200, json={"id": ORDER_ID, "status": "pending", "shippingAddress": SHIPPING})
        return Response(404, json={"detail": "Not found"})

    def paths(self) -> list[str]:
        return [path for _, path, _ in self.calls]


class _Widget:
    def __init__(self, result, gate: asyncio.Event | None = None) -> None:
        self.result = result
        self.gate = gate
        self.opened_with: list[dict[str, Any]] = []

    async def open(self, options: dict[str, Any]):
        self.opened_with.append(options)
        if self.gate is not None:
            await self.gate.wait()
        return self.result


def _collector(backend: _Backend, widget: _Widget) -> tuple[PaymentCollector, AsyncClient]:
    client = AsyncClient(transport=MockTransport(backend), base_url="http://storefront.test")
    api = StorefrontAPI(client, user_id="user-1", user_email="asha@example.com")

    async def load():
        return lambda: widget

    return PaymentCollector(api, WidgetLoader(load)), client


def test_widget_options_carry_intent_and_prefill() -> None:
    options = build_widget_options(INTENT, shipping_address=SHIPPING)

    assert options["key"] == "rzp_test_key"
    assert options["amount"] == 2360
    assert options["currency"] == "INR"
    assert options["order_id"] == "order_GW0001"
    assert options["name"] == "Sole Street"
    assert options["description"] == "Purchase from Sole Street"
    assert options["prefill"] == {"name": "Asha Rao", "email": "asha@example.com", "contact": "9876543210"}
    assert options["notes"] == {"order_id": ORDER_ID}


@pytest.mark.asyncio
async def test_completed_payment_is_forwarded_verbatim_for_verification() -> None:
    backend = _Backend()
    widget = _Widget(Completed("order_GW0001", "pay_001", "sig-from-provider"))
    collector, client = _collector(backend, widget)

    async with client:
        outcome = await collector.checkout_and_collect({"shippingAddress": SHIPPING})

    assert outcome.state is CollectorState.CONFIRMED
    assert outcome.redirect_to == f"/order-success/{ORDER_ID}"
    assert collector.state is CollectorState.CONFIRMED
    method, path, body = backend.calls[-1]
    assert (method, path) == ("POST", f"/orders/{ORDER_ID}/payments/verify")
    assert body == {
        "gatewayOrderId": "order_GW0001",
        "gatewayPaymentId": "pay_001",
        "gatewaySignature": "sig-from-provider",
        "orderId": ORDER_ID,
    }


@pytest.mark.asyncio
async def test_dismissal_is_recoverable_and_never_touches_the_order() -> None:
    backend = _Backend()
    collector, client = _collector(backend, _Widget(Dismissed()))

    async with client:
        outcome = await collector.collect(INTENT, shipping_address=SHIPPING)

    assert outcome.state is CollectorState.CANCELLED
    assert outcome.recoverable
    assert outcome.message == PAYMENT_CANCELLED_MESSAGE
    assert backend.calls == []


@pytest.mark.asyncio
async def test_rejected_verification_shows_generic_message() -> None:
    backend = _Backend()
    backend.verify_status = 400
    collector, client = _collector(backend, _Widget(Completed("order_GW0001", "pay_001", "forged")))

    async with client:
        outcome = await collector.collect(INTENT, shipping_address=SHIPPING)

    assert outcome.state is CollectorState.FAILED
    assert outcome.message == VERIFICATION_FAILED_MESSAGE
    assert not outcome.recoverable


@pytest.mark.asyncio
async def test_provider_failure_is_reported_and_retry_opens_new_attempt() -> None:
    backend = _Backend()
    widget = _Widget(PaymentFailed("order_GW0001", code="BAD_REQUEST_ERROR", description="Card declined"))
    collector, client = _collector(backend, widget)

    async with client:
        outcome = await collector.collect(INTENT, shipping_address=SHIPPING)
        assert outcome.state is CollectorState.FAILED
        assert outcome.message == "Card declined"
        assert backend.calls[-1][2] == {
            "gatewayOrderId": "order_GW0001",
            "code": "BAD_REQUEST_ERROR",
            "description": "Card declined",
        }

        widget.result = Completed("order_GW0002", "pay_002", "sig")
        retried = await collector.retry(ORDER_ID)

    assert retried.state is CollectorState.CONFIRMED
    assert widget.opened_with[-1]["order_id"] == "order_GW0002"
    assert f"/orders/{ORDER_ID}/payments/intent" in backend.paths()


@pytest.mark.asyncio
async def test_second_collect_while_in_flight_is_refused() -> None:
    backend = _Backend()
    gate = asyncio.Event()
    collector, client = _collector(backend, _Widget(Completed("order_GW0001", "pay_001", "sig"), gate=gate))

    async with client:
        first = asyncio.create_task(collector.collect(INTENT, shipping_address=SHIPPING))
        await asyncio.sleep(0.01)
        assert collector.is_busy(ORDER_ID)
        assert collector.state is CollectorState.AWAITING_PAYMENT

        with pytest.raises(PaymentInProgress):
            await collector.collect(INTENT, shipping_address=SHIPPING)
        with pytest.raises(PaymentInProgress):
            await collector.abandon(ORDER_ID)

        gate.set()
        outcome = await first

    assert outcome.state is CollectorState.CONFIRMED
    assert not collector.is_busy(ORDER_ID)
    assert backend.paths().count(f"/orders/{ORDER_ID}/payments/verify") == 1


@pytest.mark.asyncio
async def test_checkout_errors_become_outcomes() -> None:
    backend = _Backend()
    collector, client = _collector(backend, _Widget(Dismissed()))

    async with client:
        backend.checkout_status = 503
        unavailable = await collector.checkout_and_collect({"shippingAddress": SHIPPING})
        backend.checkout_status = 422
        invalid = await collector.checkout_and_collect({"shippingAddress": SHIPPING})
        cancelled = await collector.abandon(ORDER_ID)

    assert unavailable.state is CollectorState.ERROR
    assert unavailable.recoverable
    assert unavailable.order_id == ORDER_ID
    assert invalid.details["errors"] == {"shipping.phone": "Please enter a valid 10-digit phone number"}
    assert cancelled.state is CollectorState.CANCELLED
