"""HTTP client for the checkout service, as used by the payment collector."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class StorefrontAPIError(Exception):
    """A non-success response from the checkout service."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class StorefrontAPI:
    """Thin wrapper over the checkout service routes for one signed-in user."""

    def __init__(self, client: httpx.AsyncClient, *, user_id: str, user_email: str = "") -> None:
        self._client = client
        self._headers = {"X-User-Id": user_id}
        if user_email:
            self._headers["X-User-Email"] = user_email

    async def _request(self, method: str, path: str, json: Any | None = None) -> Any:
        response = await self._client.request(method, path, json=json, headers=self._headers)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            detail = body.get("detail", body) if isinstance(body, dict) else body
            logger.debug("%s %s failed with %d: %s", method, path, response.status_code, detail)
            raise StorefrontAPIError(response.status_code, detail)
        if response.status_code == 204:
            return None
        return response.json()

    async def add_to_cart(self, product_id: str, size: int, quantity: int = 1) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/carts/me/lines",
            json={"productId": product_id, "size": size, "quantity": quantity},
        )

    async def get_cart(self) -> dict[str, Any]:
        return await self._request("GET", "/carts/me")

    async def checkout(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/checkout", json=payload)

    async def request_intent(self, order_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/payments/intent")

    async def verify(self, order_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/payments/verify", json=payload)

    async def report_failure(self, order_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/payments/failure", json=payload)

    async def cancel(self, order_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/cancel")

    async def get_order(self, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")
