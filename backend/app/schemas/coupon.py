"""Coupon schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.campaign import RewardKind
from app.models.coupon import CouponStatus


class CouponDrawRequest(BaseModel):
    """Scratch a card for a lottery campaign."""
    campaign_id: int = Field(..., gt=0)
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    device_id: str = Field(..., min_length=1, max_length=128)


class CouponVerifyRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    code: str = Field(..., min_length=1, max_length=32)


class CouponResponse(BaseModel):
    id: int
    restaurant_id: str
    campaign_id: int
    code: str
    status: CouponStatus
    discount_type: RewardKind
    discount_value: int
    discount_description: str
    device_id: str
    created_at: datetime
    valid_until: datetime
    used_at: Optional[datetime] = None
    order_id: Optional[int] = None

    model_config = {"from_attributes": True}


class CouponSummary(BaseModel):
    """What a waiter or the checkout needs to apply a verified code."""
    id: int
    code: str
    discount_type: RewardKind
    discount_value: int
    discount_description: str
    valid_until: datetime

    model_config = {"from_attributes": True}


class DrawResult(BaseModel):
    won: bool
    message: str
    coupon: Optional[CouponResponse] = None


class VerifyResult(BaseModel):
    valid: bool
    reason: Optional[str] = None
    coupon: Optional[CouponSummary] = None


class ExpireResult(BaseModel):
    restaurant_id: str
    expired: int
