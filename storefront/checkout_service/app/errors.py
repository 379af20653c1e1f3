"""Domain errors raised by the checkout service layer."""

from __future__ import annotations


class CheckoutError(Exception):
    """Base class for checkout domain failures."""


class NotAuthenticated(CheckoutError):
    """No user context was supplied for a cart or order operation."""


class NotFound(CheckoutError):
    """Unknown id, or an id that does not belong to the caller."""


class EmptyCart(CheckoutError):
    """Checkout was submitted without any cart lines."""


class ValidationFailed(CheckoutError):
    """Field-scoped validation failure; ``errors`` maps field to message."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(f"{len(errors)} field(s) failed validation")
        self.errors = errors


class GatewayUnavailable(CheckoutError):
    """The payment gateway could not be reached; safe to retry."""

    def __init__(self, message: str, *, order_id: str | None = None) -> None:
        super().__init__(message)
        self.order_id = order_id


class GatewayRejected(CheckoutError):
    """The payment gateway refused the request; retrying it unchanged will not help."""

    def __init__(self, message: str, *, order_id: str | None = None) -> None:
        super().__init__(message)
        self.order_id = order_id


class InvalidSignature(CheckoutError):
    """A payment completion payload failed verification."""


class AlreadyConfirmed(CheckoutError):
    """The order is already confirmed with the same payment; an idempotent no-op."""


class PaymentConflict(CheckoutError):
    """A confirmed order received a verified payment with a different payment id."""


class InvalidTransition(CheckoutError):
    """An order status change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target
