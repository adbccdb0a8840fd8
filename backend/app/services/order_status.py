"""Order status machine.

pending_validation -> preparing -> ready -> served
pending_validation -> rejected
"""

from datetime import datetime
from typing import Optional

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, ValidationError
from app.db.base import utcnow
from app.models.order import Order, OrderStatus

ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING_VALIDATION: [OrderStatus.PREPARING, OrderStatus.REJECTED],
    OrderStatus.PREPARING: [OrderStatus.READY],
    OrderStatus.READY: [OrderStatus.SERVED],
    OrderStatus.SERVED: [],
    OrderStatus.REJECTED: [],
}

TERMINAL_STATUSES = {s for s, targets in ORDER_STATUS_TRANSITIONS.items() if not targets}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_STATUS_TRANSITIONS.get(current, [])


def apply_transition(
    order: Order,
    target: OrderStatus,
    rejection_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Move *order* to *target* and stamp the matching timestamp.

    Does not commit. Raises InvalidTransitionError when the move is not on
    the allow-list and ValidationError for a missing rejection reason.
    """
    target = OrderStatus(target)
    if not can_transition(order.status, target):
        raise InvalidTransitionError(order.status.value, target.value)

    now = now or utcnow()

    if target == OrderStatus.REJECTED:
        reason = (rejection_reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required", field="rejection_reason")
        if len(reason) > settings.rejection_reason_max:
            raise ValidationError(
                f"Rejection reason must be at most {settings.rejection_reason_max} characters",
                field="rejection_reason",
            )
        order.rejection_reason = reason
        order.rejected_at = now
    elif target == OrderStatus.PREPARING:
        order.validated_at = now
    elif target == OrderStatus.READY:
        order.ready_at = now
    elif target == OrderStatus.SERVED:
        order.served_at = now

    order.status = target
    return order
