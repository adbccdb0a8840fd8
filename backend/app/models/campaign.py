"""Promotional campaign models.

A campaign is either a *lottery* (scratch card granting coupons by weighted
draw) or a *timed promotion* (happy hour / special event discounting menu
prices while a window is open). Both live in one table discriminated by
``kind``; the attributes of each variant are only mapped on its own class.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin
from app.db.types import UTCDateTime, enum_type


class CampaignKind(str, Enum):
    LOTTERY = "lottery"
    TIMED_PROMOTION = "timed_promotion"


class RewardKind(str, Enum):
    """What a lottery coupon grants."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_ITEM = "free_item"


class Recurrence(str, Enum):
    ONE_SHOT = "one_shot"      # Christmas, New Year, ...
    RECURRING = "recurring"    # Happy hour every Friday


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Campaign(Base, TimestampMixin):
    """Common part of every campaign."""

    __tablename__ = "campaigns"
    __table_args__ = (
        Index("ix_campaigns_restaurant_active", "restaurant_id", "is_active"),
        Index("ix_campaigns_restaurant_created", "restaurant_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __mapper_args__ = {"polymorphic_on": "kind"}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} restaurant={self.restaurant_id!r} active={self.is_active}>"


class LotteryCampaign(Campaign):
    """Scratch-card campaign: each draw wins a coupon with ``win_probability`` %."""

    __mapper_args__ = {"polymorphic_identity": CampaignKind.LOTTERY.value}

    win_probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reward_kind: Mapped[Optional[RewardKind]] = mapped_column(enum_type(RewardKind), nullable=True)
    reward_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reward_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    validity_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class TimedPromotionCampaign(Campaign):
    """Automatic price discount while a date range or weekly window is open."""

    __mapper_args__ = {"polymorphic_identity": CampaignKind.TIMED_PROMOTION.value}

    recurrence: Mapped[Optional[Recurrence]] = mapped_column(enum_type(Recurrence), nullable=True)

    # one_shot rules
    start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # recurring rules; 0 = Sunday .. 6 = Saturday, times are "HH:MM" local
    days_of_week: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    start_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    end_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    discount_type: Mapped[Optional[DiscountType]] = mapped_column(enum_type(DiscountType), nullable=True)
    discount_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_categories: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    banner_text: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    @property
    def has_rules(self) -> bool:
        if self.recurrence == Recurrence.ONE_SHOT:
            return self.start_date is not None and self.end_date is not None
        if self.recurrence == Recurrence.RECURRING:
            return bool(self.days_of_week) and bool(self.start_time) and bool(self.end_time)
        return False

    @property
    def has_discount(self) -> bool:
        return self.discount_type is not None and self.discount_value is not None
