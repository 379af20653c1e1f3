"""Server-side verification of payment completion callbacks.

The gateway signs ``"<gateway order id>|<gateway payment id>"`` with the
merchant's key secret using HMAC-SHA256 and hands the hex digest to the
browser. Only a payload whose signature recomputes exactly may confirm an
order; the comparison runs in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import NoReturn

from .context import UserContext
from .errors import AlreadyConfirmed, InvalidSignature, InvalidTransition, PaymentConflict
from .metrics import PAYMENT_VERIFICATIONS_TOTAL
from .models import Order
from .orders import OrderLifecycle
from .repository import OrderRepository
from .schemas import VerifyPaymentRequest
from .state_machine import OrderStatus, TransitionCause

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Payment verification failed. Please contact support."


def sign_payment(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    expected = sign_payment(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class VerificationResult:
    order: Order
    already_confirmed: bool


class PaymentVerifier:
    """The only path that moves an order to ``confirmed``."""

    def __init__(self, repository: OrderRepository, lifecycle: OrderLifecycle, *, secret: str) -> None:
        if not secret:
            raise ValueError("Payment verification requires the gateway key secret")
        self.repository = repository
        self.lifecycle = lifecycle
        self._secret = secret

    async def verify(
        self,
        user: UserContext | None,
        order_id: str,
        payload: VerifyPaymentRequest,
    ) -> VerificationResult:
        # order_id comes from the request path; the body copy is only cross-checked
        order = await self.lifecycle.get_owned(user, order_id)

        if payload.order_id is not None and payload.order_id != order.id:
            self._reject(order, payload, "body orderId does not match the request path")

        if not signature_matches(
            self._secret,
            payload.gateway_order_id,
            payload.gateway_payment_id,
            payload.gateway_signature,
        ):
            self._reject(order, payload, "signature mismatch")

        attempt = await self.repository.find_attempt(order, gateway_order_id=payload.gateway_order_id)
        if attempt is None:
            self._reject(order, payload, "gateway order id is not an attempt of this order")

        try:
            transition = await self.lifecycle.apply(
                order,
                OrderStatus.CONFIRMED,
                TransitionCause.PAYMENT_VERIFIED,
                values={
                    "gateway_order_id": payload.gateway_order_id,
                    "gateway_payment_id": payload.gateway_payment_id,
                },
                detail={
                    "gatewayOrderId": payload.gateway_order_id,
                    "gatewayPaymentId": payload.gateway_payment_id,
                },
            )
        except AlreadyConfirmed:
            return self._settled(order, payload)
        except InvalidTransition:
            self._unpayable(order, payload)
        if transition is None:
            # another request changed the status between our read and the update
            current = await self.lifecycle.get_owned(user, order_id)
            return self._settled(current, payload)

        await self.repository.set_attempt_status(attempt, status="verified")
        await self.lifecycle.complete(transition)
        PAYMENT_VERIFICATIONS_TOTAL.labels(outcome="confirmed").inc()
        logger.info(
            "Order %s confirmed by payment %s (%s)",
            order.id,
            payload.gateway_payment_id,
            payload.gateway_order_id,
        )
        return VerificationResult(order=transition.order, already_confirmed=False)

    def _settled(self, order: Order, payload: VerifyPaymentRequest) -> VerificationResult:
        if order.status != OrderStatus.CONFIRMED.value:
            self._unpayable(order, payload)
        if order.gateway_payment_id != payload.gateway_payment_id:
            PAYMENT_VERIFICATIONS_TOTAL.labels(outcome="conflict").inc()
            logger.error(
                "Order %s already confirmed by payment %s; payment %s needs a refund",
                order.id,
                order.gateway_payment_id,
                payload.gateway_payment_id,
            )
            raise PaymentConflict("Order already confirmed with a different payment")
        PAYMENT_VERIFICATIONS_TOTAL.labels(outcome="already_confirmed").inc()
        logger.info("Order %s already confirmed by payment %s", order.id, payload.gateway_payment_id)
        return VerificationResult(order=order, already_confirmed=True)

    def _unpayable(self, order: Order, payload: VerifyPaymentRequest) -> NoReturn:
        PAYMENT_VERIFICATIONS_TOTAL.labels(outcome="invalid_state").inc()
        logger.error(
            "Order %s is %s but payment %s (%s) was captured for it; payment needs a refund",
            order.id,
            order.status,
            payload.gateway_payment_id,
            payload.gateway_order_id,
        )
        raise InvalidTransition(order.status, OrderStatus.CONFIRMED.value)

    def _reject(self, order: Order, payload: VerifyPaymentRequest, reason: str) -> NoReturn:
        PAYMENT_VERIFICATIONS_TOTAL.labels(outcome="invalid_signature").inc()
        logger.warning(
            "Payment verification rejected for order %s (status %s): %s; "
            "gateway_order_id=%s gateway_payment_id=%s body_order_id=%s",
            order.id,
            order.status,
            reason,
            payload.gateway_order_id,
            payload.gateway_payment_id,
            payload.order_id,
        )
        raise InvalidSignature(GENERIC_FAILURE_MESSAGE)
