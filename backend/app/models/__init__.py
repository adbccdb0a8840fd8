"""SQLAlchemy models."""

from app.models.campaign import (
    Campaign,
    LotteryCampaign,
    TimedPromotionCampaign,
    CampaignKind,
    RewardKind,
    Recurrence,
    DiscountType,
)
from app.models.coupon import Coupon, CouponStatus
from app.models.order import Order, OrderStatus
from app.models.product import Product

__all__ = [
    "Campaign",
    "LotteryCampaign",
    "TimedPromotionCampaign",
    "CampaignKind",
    "RewardKind",
    "Recurrence",
    "DiscountType",
    "Coupon",
    "CouponStatus",
    "Order",
    "OrderStatus",
    "Product",
]
