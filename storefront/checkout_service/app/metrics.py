"""Prometheus metrics for the checkout service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram


CHECKOUT_ORDERS_CREATED_TOTAL: Final = Counter(
    "checkout_orders_created_total",
    "Number of orders materialized from carts.",
)

CHECKOUT_VALIDATION_FAILURES_TOTAL: Final = Counter(
    "checkout_validation_failures_total",
    "Number of checkout submissions rejected by address validation.",
)

PAYMENT_INTENTS_TOTAL: Final = Counter(
    "payment_intents_total",
    "Payment intent requests by outcome.",
    labelnames=("outcome",),
)

PAYMENT_GATEWAY_LATENCY_SECONDS: Final = Histogram(
    "payment_gateway_latency_seconds",
    "Latency of payment gateway intent calls.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

PAYMENT_VERIFICATIONS_TOTAL: Final = Counter(
    "payment_verifications_total",
    "Payment verification attempts by outcome.",
    labelnames=("outcome",),
)

ORDER_TRANSITIONS_TOTAL: Final = Counter(
    "order_transitions_total",
    "Order status transitions by target status.",
    labelnames=("status",),
)

CART_WEBHOOK_DELIVERIES_TOTAL: Final = Counter(
    "cart_webhook_deliveries_total",
    "Cart webhook deliveries by outcome.",
    labelnames=("outcome",),
)
