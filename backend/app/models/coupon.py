"""Coupon model: a single-use reward produced by a lottery draw."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, VersionMixin, utcnow
from app.db.types import UTCDateTime, enum_type
from app.models.campaign import RewardKind


class CouponStatus(str, Enum):
    """Monotonic: active -> used | expired, both terminal."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class Coupon(Base, VersionMixin):
    """A coupon won by a device in a lottery campaign.

    Reward terms are copied from the campaign at issuance so later edits to
    the campaign never change an already issued coupon. ``campaign_id`` is a
    weak reference: the campaign may have been deleted since.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        Index("ix_coupons_restaurant_device_created", "restaurant_id", "device_id", "created_at"),
        Index("ix_coupons_restaurant_code", "restaurant_id", "code"),
        Index("ix_coupons_status_valid_until", "status", "valid_until"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    status: Mapped[CouponStatus] = mapped_column(
        enum_type(CouponStatus, length=16), default=CouponStatus.ACTIVE, nullable=False
    )

    discount_type: Mapped[RewardKind] = mapped_column(enum_type(RewardKind), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_description: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    # Advisory anti-abuse key chosen by the client; never used for authorization.
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    # Back-reference to the consuming order; no FK to avoid a cycle with orders.coupon_id
    order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<Coupon id={self.id} code={self.code!r} status={self.status.value}>"
