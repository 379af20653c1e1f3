"""Client-side payment collection against the provider's hosted widget.

Everything handled here is outside the trust boundary: the widget's
completion tuple is forwarded verbatim to the checkout service, which is the
only party that can confirm an order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Union

from .api import StorefrontAPI, StorefrontAPIError
from .loader import WidgetLoadError, WidgetLoader

logger = logging.getLogger(__name__)

VERIFICATION_FAILED_MESSAGE = "Payment verification failed. Please contact support."
PAYMENT_CANCELLED_MESSAGE = "Payment was cancelled"


class CollectorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    AWAITING_PAYMENT = "awaiting_payment"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class Completed:
    gateway_order_id: str
    gateway_payment_id: str
    gateway_signature: str


@dataclass(frozen=True)
class Dismissed:
    pass


@dataclass(frozen=True)
class PaymentFailed:
    gateway_order_id: str
    code: str | None = None
    description: str | None = None


WidgetResult = Union[Completed, Dismissed, PaymentFailed]


class CheckoutWidget(Protocol):
    async def open(self, options: dict[str, Any]) -> WidgetResult: ...


WidgetFactory = Callable[[], CheckoutWidget]


class PaymentInProgress(RuntimeError):
    """A payment for this order is already being collected or verified."""


@dataclass
class PaymentOutcome:
    state: CollectorState
    order_id: str
    message: str | None = None
    recoverable: bool = False
    redirect_to: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def build_widget_options(
    intent: dict[str, Any],
    *,
    shipping_address: dict[str, Any],
    description: str | None = None,
    theme_color: str = "#3B82F6",
) -> dict[str, Any]:
    """Options for the hosted widget from a payment intent returned by the service."""

    store_name = intent.get("storeName") or ""
    return {
        "key": intent["keyId"],
        "amount": intent["amount"],
        "currency": intent["currency"],
        "name": store_name,
        "description": description or f"Purchase from {store_name}".strip(),
        "order_id": intent["gatewayOrderId"],
        "prefill": {
            "name": shipping_address.get("name", ""),
            "email": shipping_address.get("email", ""),
            "contact": shipping_address.get("phone", ""),
        },
        "notes": {"order_id": intent["orderId"]},
        "theme": {"color": theme_color},
    }


class PaymentCollector:
    """Drives one payment attempt from an intent to a verified order.

    A second ``collect`` for an order whose attempt is still open raises
    :class:`PaymentInProgress` instead of starting a parallel payment.
    """

    def __init__(
        self,
        api: StorefrontAPI,
        loader: WidgetLoader[WidgetFactory],
        *,
        description: str | None = None,
    ) -> None:
        self._api = api
        self._loader = loader
        self._description = description
        self._in_flight: set[str] = set()
        self.state = CollectorState.IDLE

    def is_busy(self, order_id: str) -> bool:
        return order_id in self._in_flight

    async def collect(self, intent: dict[str, Any], *, shipping_address: dict[str, Any]) -> PaymentOutcome:
        order_id = intent["orderId"]
        if order_id in self._in_flight:
            raise PaymentInProgress(f"Payment for order {order_id} is already in progress")

        self._in_flight.add(order_id)
        try:
            return await self._collect(order_id, intent, shipping_address)
        finally:
            self._in_flight.discard(order_id)

    async def checkout_and_collect(self, checkout_payload: dict[str, Any]) -> PaymentOutcome:
        """Submit checkout, then collect payment for the intent it returns."""

        try:
            created = await self._api.checkout(checkout_payload)
        except StorefrontAPIError as exc:
            return self._checkout_error(exc)
        order = created["order"]
        return await self.collect(created["payment"], shipping_address=order["shippingAddress"])

    async def retry(self, order_id: str) -> PaymentOutcome:
        """Open a fresh attempt against the same order after a cancel or failure."""

        order = await self._api.get_order(order_id)
        try:
            intent = await self._api.request_intent(order_id)
        except StorefrontAPIError as exc:
            return self._checkout_error(exc, order_id=order_id)
        return await self.collect(intent, shipping_address=order["shippingAddress"])

    async def abandon(self, order_id: str) -> PaymentOutcome:
        """Cancel the order outright; only valid before any payment is verified."""

        if order_id in self._in_flight:
            raise PaymentInProgress(f"Payment for order {order_id} is still in progress")
        try:
            await self._api.cancel(order_id)
        except StorefrontAPIError as exc:
            return self._checkout_error(exc, order_id=order_id)
        return self._finish(CollectorState.CANCELLED, order_id, "Order cancelled")

    async def _collect(
        self,
        order_id: str,
        intent: dict[str, Any],
        shipping_address: dict[str, Any],
    ) -> PaymentOutcome:
        self.state = CollectorState.LOADING
        try:
            factory = await self._loader.ensure_loaded()
        except WidgetLoadError as exc:
            return self._finish(CollectorState.ERROR, order_id, str(exc), recoverable=True)

        options = build_widget_options(intent, shipping_address=shipping_address, description=self._description)
        self.state = CollectorState.AWAITING_PAYMENT
        result = await factory().open(options)

        if isinstance(result, Dismissed):
            logger.info("Payment widget dismissed for order %s", order_id)
            return self._finish(CollectorState.CANCELLED, order_id, PAYMENT_CANCELLED_MESSAGE, recoverable=True)

        if isinstance(result, PaymentFailed):
            logger.warning("Provider reported payment failure for order %s: %s", order_id, result.code)
            try:
                await self._api.report_failure(
                    order_id,
                    {
                        "gatewayOrderId": result.gateway_order_id,
                        "code": result.code,
                        "description": result.description,
                    },
                )
            except StorefrontAPIError as exc:
                logger.warning("Could not report payment failure for order %s: %s", order_id, exc)
            return self._finish(
                CollectorState.FAILED,
                order_id,
                result.description or "Payment failed",
                recoverable=True,
            )

        self.state = CollectorState.VERIFYING
        try:
            verified = await self._api.verify(
                order_id,
                {
                    "gatewayOrderId": result.gateway_order_id,
                    "gatewayPaymentId": result.gateway_payment_id,
                    "gatewaySignature": result.gateway_signature,
                    "orderId": order_id,
                },
            )
        except StorefrontAPIError as exc:
            logger.error("Payment verification failed for order %s: %s", order_id, exc)
            return self._finish(CollectorState.FAILED, order_id, VERIFICATION_FAILED_MESSAGE)

        return self._finish(
            CollectorState.CONFIRMED,
            order_id,
            redirect_to=f"/order-success/{order_id}",
            details=verified,
        )

    def _checkout_error(self, exc: StorefrontAPIError, *, order_id: str = "") -> PaymentOutcome:
        detail = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
        if exc.status_code == 422:
            return self._finish(
                CollectorState.ERROR,
                order_id,
                "Please correct the highlighted fields",
                recoverable=True,
                details=detail,
            )
        return self._finish(
            CollectorState.ERROR,
            detail.get("orderId") or order_id,
            str(detail.get("message") or "An error occurred during checkout"),
            recoverable=exc.status_code in (502, 503),
            details=detail,
        )

    def _finish(
        self,
        state: CollectorState,
        order_id: str,
        message: str | None = None,
        *,
        recoverable: bool = False,
        redirect_to: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> PaymentOutcome:
        self.state = state
        return PaymentOutcome(
            state=state,
            order_id=order_id,
            message=message,
            recoverable=recoverable,
            redirect_to=redirect_to,
            details=details or {},
        )
