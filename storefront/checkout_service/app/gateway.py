"""Payment gateway client used to open a payment intent for an order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Protocol

import httpx

from storefront.common.tracing import get_tracer

from .errors import GatewayRejected, GatewayUnavailable
from .metrics import PAYMENT_GATEWAY_LATENCY_SECONDS

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    """The gateway's handle for one payment attempt."""

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str | None = None


class PaymentGateway(Protocol):
    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder: ...


def receipt_for(order_id: str) -> str:
    # gateway receipts are capped at 40 characters
    return f"rcpt_{order_id.replace('-', '')}"[:40]


class RazorpayGateway:
    """Creates gateway orders over HTTP with the merchant's basic-auth credentials.

    Transport errors and 5xx responses are retried up to ``max_attempts``
    and then surface as :class:`GatewayUnavailable`; any 4xx is final and
    surfaces as :class:`GatewayRejected`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        key_id: str,
        key_secret: str,
        base_url: str,
        max_attempts: int = 2,
    ) -> None:
        self._client = client
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max(1, max_attempts)

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        if amount <= 0:
            raise GatewayRejected("Payment amount must be positive")
        body: dict[str, Any] = {"amount": amount, "currency": currency, "receipt": receipt}
        if notes:
            body["notes"] = notes

        with tracer.start_as_current_span("payment_gateway.create_order") as span:
            span.set_attribute("payment.receipt", receipt)
            span.set_attribute("payment.amount", amount)
            span.set_attribute("payment.currency", currency)
            return await self._post_order(body, amount=amount, currency=currency, receipt=receipt)

    async def _post_order(self, body: dict[str, Any], *, amount: int, currency: str, receipt: str) -> GatewayOrder:
        last_error: str = "no attempt made"
        for attempt in range(1, self._max_attempts + 1):
            started = perf_counter()
            try:
                response = await self._client.post(f"{self._base_url}/orders", json=body, auth=self._auth)
            except httpx.TransportError as exc:
                last_error = f"transport error: {exc!r}"
                logger.warning("Gateway attempt %d/%d failed: %s", attempt, self._max_attempts, last_error)
                continue
            finally:
                PAYMENT_GATEWAY_LATENCY_SECONDS.observe(perf_counter() - started)

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                logger.warning("Gateway attempt %d/%d failed: %s", attempt, self._max_attempts, last_error)
                continue
            if response.status_code >= 400:
                logger.error(
                    "Gateway rejected order for receipt %s: HTTP %d %s",
                    receipt,
                    response.status_code,
                    response.text[:500],
                )
                raise GatewayRejected(_error_description(response))
            return _parse_order(response, amount=amount, currency=currency)

        raise GatewayUnavailable(f"Payment gateway unavailable ({last_error})")

    async def close(self) -> None:
        await self._client.aclose()


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"Payment gateway rejected the request (HTTP {response.status_code})"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"Payment gateway rejected the request (HTTP {response.status_code})"


def _parse_order(response: httpx.Response, *, amount: int, currency: str) -> GatewayOrder:
    try:
        payload = response.json()
    except ValueError as exc:
        raise GatewayUnavailable("Payment gateway returned an unreadable response") from exc
    gateway_order_id = payload.get("id") if isinstance(payload, dict) else None
    if not gateway_order_id:
        raise GatewayUnavailable("Payment gateway response did not include an order id")
    return GatewayOrder(
        id=str(gateway_order_id),
        amount=int(payload.get("amount", amount)),
        currency=str(payload.get("currency", currency)),
        receipt=payload.get("receipt"),
        status=payload.get("status"),
    )
