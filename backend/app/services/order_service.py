"""Order Service - table orders and atomic coupon redemption.

Redeeming a coupon against an order is the one multi-row write in the
engine. Within a single transaction:
1. Re-read the coupon fresh (FOR UPDATE where the backend supports it)
2. Re-check restaurant, status and expiry
3. Compare-and-set the coupon to ``used`` on the version that was read
4. Insert the order with subtotal / discount / total
5. Link the coupon to the order and commit

A compare-and-set miss, a stale row or a locked store rolls the whole
transaction back and the attempt is retried with exponential backoff. A
coupon is therefore either used by exactly one committed order or still
active, never consumed without an order.
"""

import logging
import time
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    RedemptionConflictError,
    ValidationError,
)
from app.db.base import utcnow
from app.models.coupon import Coupon, CouponStatus
from app.models.order import Order, OrderStatus
from app.schemas.order import OrderCreate, OrderItem
from app.services.coupon_service import calculate_discount, validate_coupon
from app.services.order_status import apply_transition

logger = logging.getLogger(__name__)


class _CompareAndSetMiss(Exception):
    """The coupon row changed between read and conditional update."""


# PostgreSQL SQLSTATEs for lock timeouts, serialization failures and deadlocks
LOCK_CONTENTION_SQLSTATES = {"55P03", "40001", "40P01"}


def is_lock_contention(exc: OperationalError) -> bool:
    """True for busy/locked errors worth retrying, False for outages or schema errors."""
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in LOCK_CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "database table is locked" in message


def calculate_order_total(items: Iterable[OrderItem]) -> int:
    """Subtotal in cents: (unit price + option modifiers) x quantity per line."""
    subtotal = 0
    for item in items:
        unit = item.unit_price + sum(opt.price_modifier for opt in item.options)
        subtotal += max(0, unit) * item.quantity
    return subtotal


class OrderService:
    """Creates orders, redeems coupons and drives the status machine."""

    def __init__(self, db: Session, sleep=time.sleep):
        self.db = db
        self._sleep = sleep

    def create_order(self, data: OrderCreate, now: Optional[datetime] = None) -> Order:
        """Create an order, redeeming ``data.coupon_id`` atomically if given."""
        if len(data.items) > settings.order_max_items:
            raise ValidationError(
                f"An order cannot contain more than {settings.order_max_items} items",
                field="items",
            )

        subtotal = calculate_order_total(data.items)

        if data.coupon_id is None:
            order = self._build_order(data, subtotal, coupon_id=None, discount=None)
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
            logger.info("Order created: id=%s table=%s total=%s", order.id, order.table_label, order.total_amount)
            return order

        attempts = settings.redemption_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self._redeem(data, subtotal, now or utcnow())
            except (_CompareAndSetMiss, StaleDataError, OperationalError) as exc:
                self.db.rollback()
                if isinstance(exc, OperationalError) and not is_lock_contention(exc):
                    raise
                logger.warning(
                    "Redemption conflict on coupon %s (attempt %d/%d): %s",
                    data.coupon_id, attempt, attempts, type(exc).__name__,
                )
                if attempt < attempts:
                    self._sleep(settings.redemption_backoff_seconds * (2 ** (attempt - 1)))
            except Exception:
                self.db.rollback()
                raise

        raise RedemptionConflictError(data.coupon_id, attempts)

    def _build_order(
        self,
        data: OrderCreate,
        subtotal: int,
        coupon_id: Optional[int],
        discount: Optional[int],
    ) -> Order:
        total = subtotal if discount is None else max(0, subtotal - discount)
        return Order(
            restaurant_id=data.restaurant_id,
            table_id=data.table_id,
            table_label=data.table_label,
            customer_session_id=data.customer_session_id,
            customer_note=data.customer_note,
            items=[item.model_dump() for item in data.items],
            subtotal=subtotal,
            coupon_id=coupon_id,
            discount_amount=discount,
            total_amount=total,
            status=OrderStatus.PENDING_VALIDATION,
        )

    def _redeem(self, data: OrderCreate, subtotal: int, now: datetime) -> Order:
        stmt = (
            select(Coupon)
            .where(Coupon.id == data.coupon_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        coupon = self.db.scalars(stmt).first()
        if coupon is None:
            raise NotFoundError(f"Coupon {data.coupon_id} not found")
        if coupon.restaurant_id != data.restaurant_id:
            raise InvalidStateError("This coupon is not valid for this restaurant")

        check = validate_coupon(coupon, now)
        if not check.valid:
            raise InvalidStateError(check.reason)

        read_version = coupon.version
        discount = calculate_discount(coupon, subtotal)

        # Claim the coupon first so a concurrent redeemer misses the CAS
        # instead of racing on the order insert.
        claimed = self.db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                Coupon.status == CouponStatus.ACTIVE,
                Coupon.version_matches(read_version),
            )
            .values(status=CouponStatus.USED, used_at=now, version=Coupon.next_version())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise _CompareAndSetMiss()

        order = self._build_order(data, subtotal, coupon_id=coupon.id, discount=discount)
        self.db.add(order)
        self.db.flush()

        self.db.execute(
            update(Coupon)
            .where(Coupon.id == coupon.id)
            .values(order_id=order.id)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(order)

        logger.info(
            "Order created with coupon: id=%s coupon=%s subtotal=%s discount=%s total=%s",
            order.id, coupon.id, subtotal, discount, order.total_amount,
        )
        return order

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_orders(
        self,
        restaurant_id: str,
        table_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        customer_session_id: Optional[str] = None,
    ) -> List[Order]:
        """Orders of a restaurant, newest first, optionally scoped to a table."""
        stmt = select(Order).where(Order.restaurant_id == restaurant_id)
        if table_id is not None:
            stmt = stmt.where(Order.table_id == table_id)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if customer_session_id is not None:
            stmt = stmt.where(Order.customer_session_id == customer_session_id)
        stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
        return list(self.db.scalars(stmt).unique())

    # ------------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------------

    def update_order_status(
        self,
        order_id: int,
        status: OrderStatus,
        rejection_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        order = self.get_order(order_id)
        previous = order.status
        apply_transition(order, status, rejection_reason, now)
        self.db.commit()
        self.db.refresh(order)
        logger.info("Order %s: %s -> %s", order.id, previous.value, order.status.value)
        return order
