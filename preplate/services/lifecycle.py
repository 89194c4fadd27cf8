"""
Order Lifecycle State Machine

Two independent axes per order:

    status:          PENDING -> CONFIRMED -> PREPARING -> READY -> COMPLETED
                     any non-terminal state -> CANCELLED
    payment_status:  PENDING -> PAID | FAILED,  PAID -> REFUNDED

COMPLETED and CANCELLED are terminal, as are FAILED and REFUNDED. The
axes are not coupled: an order can complete while its payment is still
pending.

Actors:
    - the owning restaurant may apply any valid transition on either axis
    - the owning user may only cancel, and never touches payment status

``plan_order_update`` runs every check up front and returns the values to
write, so a rejected request never leaves a half-applied update.
"""

from dataclasses import dataclass
from typing import Optional

from preplate.core.exceptions import AuthorizationError, ValidationError
from preplate.core.tokens import AccountKind
from preplate.models import OrderStatus, PaymentStatus

STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

USER_ALLOWED_STATUSES = frozenset({OrderStatus.CANCELLED})


def is_terminal(status: OrderStatus) -> bool:
    return not STATUS_TRANSITIONS[status]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target == current or target in STATUS_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target == current or target in PAYMENT_TRANSITIONS[current]


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def parse_payment_status(value: str) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError("Invalid payment status")


@dataclass(frozen=True)
class OrderUpdatePlan:
    """Values to write; ``None`` means leave the column alone."""
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None

    @property
    def is_empty(self) -> bool:
        return self.status is None and self.payment_status is None


def plan_order_update(
    actor: AccountKind,
    current_status: OrderStatus,
    current_payment_status: PaymentStatus,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
) -> OrderUpdatePlan:
    """
    Validate a requested update against the state machine and actor rules.

    Args:
        actor: Kind of the (already ownership-checked) caller
        current_status: Stored order status
        current_payment_status: Stored payment status
        status: Requested order status, if any
        payment_status: Requested payment status, if any

    Returns:
        OrderUpdatePlan: Only the columns that actually change

    Raises:
        AuthorizationError: The actor kind may not make this change
        ValidationError: The transition is not allowed from the current state
    """
    if actor is AccountKind.USER:
        if payment_status is not None and payment_status != current_payment_status:
            raise AuthorizationError("Only the restaurant can update payment status")
        if status is not None and status != current_status and status not in USER_ALLOWED_STATUSES:
            raise AuthorizationError("Customers can only cancel their orders")

    if status is not None and not can_transition(current_status, status):
        raise ValidationError(
            f"Cannot change order status from {current_status.value} to {status.value}"
        )
    if payment_status is not None and not can_transition_payment(current_payment_status, payment_status):
        raise ValidationError(
            f"Cannot change payment status from {current_payment_status.value} "
            f"to {payment_status.value}"
        )

    return OrderUpdatePlan(
        status=status if status is not None and status != current_status else None,
        payment_status=(
            payment_status
            if payment_status is not None and payment_status != current_payment_status
            else None
        ),
    )
