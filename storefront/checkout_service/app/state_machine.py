"""Order status transitions and the actor allowed to drive each one."""

from __future__ import annotations

from enum import Enum
from typing import Final

from .errors import AlreadyConfirmed, InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransitionCause(str, Enum):
    PAYMENT_VERIFIED = "payment_verified"
    USER_CANCELLED = "user_cancelled"
    GATEWAY_FAILURE = "gateway_failure"


# target status -> (allowed source statuses, the only cause that may drive it)
# failed stays payable: a retry attempt may still confirm it, or the user may cancel it
_TRANSITIONS: Final[dict[OrderStatus, tuple[frozenset[OrderStatus], TransitionCause]]] = {
    OrderStatus.CONFIRMED: (
        frozenset({OrderStatus.PENDING, OrderStatus.FAILED}),
        TransitionCause.PAYMENT_VERIFIED,
    ),
    OrderStatus.CANCELLED: (
        frozenset({OrderStatus.PENDING, OrderStatus.FAILED}),
        TransitionCause.USER_CANCELLED,
    ),
    OrderStatus.FAILED: (
        frozenset({OrderStatus.PENDING}),
        TransitionCause.GATEWAY_FAILURE,
    ),
}

PAYABLE_STATUSES: Final = frozenset({OrderStatus.PENDING, OrderStatus.FAILED})


def can_transition(current: OrderStatus | str, target: OrderStatus | str, cause: TransitionCause) -> bool:
    rule = _TRANSITIONS.get(OrderStatus(target))
    if rule is None:
        return False
    sources, required_cause = rule
    return OrderStatus(current) in sources and cause is required_cause


def ensure_transition(current: OrderStatus | str, target: OrderStatus | str, cause: TransitionCause) -> OrderStatus:
    """Return the target status or raise ``InvalidTransition``.

    Re-confirming a confirmed order raises ``AlreadyConfirmed`` instead, which
    callers treat as a no-op rather than an error.
    """

    if OrderStatus(current) is OrderStatus.CONFIRMED and OrderStatus(target) is OrderStatus.CONFIRMED:
        raise AlreadyConfirmed("Order is already confirmed")
    if not can_transition(current, target, cause):
        raise InvalidTransition(OrderStatus(current).value, OrderStatus(target).value)
    return OrderStatus(target)


def sources_for(target: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses from which ``target`` is reachable."""

    return _TRANSITIONS[target][0]


def is_payable(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in PAYABLE_STATUSES
