"""Coupon routes: scratch-card draws, wallet, verification, expiry sweep."""

from fastapi import APIRouter, Request

from app.core.rate_limit import device_limiter, limiter
from app.core.responses import list_response
from app.core.validators import DeviceIdQuery, RestaurantIdQuery
from app.db.session import DbSession
from app.schemas.coupon import (
    CouponDrawRequest,
    CouponResponse,
    CouponSummary,
    CouponVerifyRequest,
    DrawResult,
    ExpireResult,
    VerifyResult,
)
from app.services.coupon_service import CouponService

router = APIRouter()


def _serialize_coupon(coupon) -> dict:
    return CouponResponse.model_validate(coupon).model_dump(mode="json")


@router.post("/draw")
@device_limiter.limit("20/minute")
async def draw_coupon(request: Request, data: CouponDrawRequest, db: DbSession):
    """Scratch a card. A loss and a capped device get the same answer."""
    outcome = CouponService(db).generate_coupon(
        campaign_id=data.campaign_id,
        restaurant_id=data.restaurant_id,
        device_id=data.device_id,
    )
    result = DrawResult(
        won=outcome.won,
        message=outcome.message,
        coupon=CouponResponse.model_validate(outcome.coupon) if outcome.coupon else None,
    )
    return result.model_dump(mode="json")


@router.post("/verify")
@limiter.limit("30/minute")
async def verify_coupon(request: Request, data: CouponVerifyRequest, db: DbSession):
    """Check a code before applying it to an order."""
    check = CouponService(db).verify_code(data.restaurant_id, data.code)
    result = VerifyResult(
        valid=check.valid,
        reason=check.reason,
        coupon=CouponSummary.model_validate(check.coupon) if check.valid else None,
    )
    return result.model_dump(mode="json")


@router.get("/wallet")
@limiter.limit("60/minute")
async def get_wallet(
    request: Request,
    db: DbSession,
    restaurant_id: RestaurantIdQuery,
    device_id: DeviceIdQuery,
):
    """Coupons won by a device, newest first."""
    coupons = CouponService(db).get_by_device(restaurant_id, device_id)
    return list_response([_serialize_coupon(c) for c in coupons])


@router.post("/expire")
@limiter.limit("10/minute")
async def expire_coupons(request: Request, db: DbSession, restaurant_id: RestaurantIdQuery):
    """Sweep a restaurant's overdue active coupons to expired."""
    count = CouponService(db).expire_old_coupons(restaurant_id)
    return ExpireResult(restaurant_id=restaurant_id, expired=count).model_dump()
