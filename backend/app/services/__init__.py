# Services module

from app.services.campaign_service import CampaignService
from app.services.coupon_service import CouponService, DrawOutcome, CouponCheck
from app.services.order_service import OrderService, calculate_order_total
from app.services.order_status import ORDER_STATUS_TRANSITIONS, apply_transition
from app.services.order_feed import OrderFeed, order_feed, build_kitchen_board

__all__ = [
    "CampaignService",
    "CouponService",
    "DrawOutcome",
    "CouponCheck",
    "OrderService",
    "calculate_order_total",
    "ORDER_STATUS_TRANSITIONS",
    "apply_transition",
    "OrderFeed",
    "order_feed",
    "build_kitchen_board",
]
