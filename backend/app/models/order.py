"""Table order models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin
from app.db.types import UTCDateTime, enum_type


class OrderStatus(str, Enum):
    """Lifecycle of a table order through the kitchen."""

    PENDING_VALIDATION = "pending_validation"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    REJECTED = "rejected"


class Order(Base, TimestampMixin):
    """An order placed from a table.

    ``items`` is an immutable snapshot of name / unit price / quantity taken
    at checkout. Money values are integers in the smallest currency unit.
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_restaurant_created", "restaurant_id", "created_at"),
        Index("ix_orders_restaurant_table", "restaurant_id", "table_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    table_id: Mapped[str] = mapped_column(String(64), nullable=False)
    table_label: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    customer_note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    items: Mapped[list] = mapped_column(JSON, nullable=False)

    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    coupon_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("coupons.id", ondelete="RESTRICT"), nullable=True, unique=True
    )
    discount_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        enum_type(OrderStatus, length=24), default=OrderStatus.PENDING_VALIDATION, nullable=False
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    ready_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    served_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Relationships
    coupon: Mapped[Optional["Coupon"]] = relationship("Coupon", lazy="joined")

    def __repr__(self) -> str:
        return f"<Order id={self.id} table={self.table_label!r} status={self.status.value} total={self.total_amount}>"


# Forward references
from app.models.coupon import Coupon
