"""Coupon Issuer - lottery draws, wallet lookups and expiry.

Flow of a draw:
1. Device cap: count coupons issued to (restaurant, device) since local
   midnight; at the cap the draw is reported as a plain loss
2. Load the campaign (must exist, be active and be a lottery)
3. Draw uniformly in [0, 100) from the OS CSPRNG
4. On a win, reserve a fresh PREFIX-XXXXX code and persist the coupon with
   the campaign's reward terms copied onto it

Redemption itself lives in ``OrderService.create_order`` because it has to
commit together with the order.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CodeGenerationError, ForbiddenError, NotFoundError, ValidationError
from app.db.base import utcnow
from app.models.campaign import Campaign, LotteryCampaign, RewardKind
from app.models.coupon import Coupon, CouponStatus
from app.services.promotion_window import local_midnight

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits

# Losses and the daily cap read the same so clients cannot probe the limit
LOSS_MESSAGE = "Not this time! Try again on your next visit."
WIN_MESSAGE = "Congratulations! You won: {description}"

REASON_NOT_FOUND = "Invalid code"
REASON_USED = "This coupon has already been used"
REASON_EXPIRED = "This coupon has expired"
REASON_SAME_DAY = "This coupon can only be used on your next visit, not on the day it was won"

_system_random = secrets.SystemRandom()


@dataclass
class DrawOutcome:
    won: bool
    message: str
    coupon: Optional[Coupon] = None


@dataclass
class CouponCheck:
    valid: bool
    reason: Optional[str] = None
    coupon: Optional[Coupon] = None


def generate_code(prefix: Optional[str] = None, length: Optional[int] = None) -> str:
    """Random ``PREFIX-XXXXX`` code over A-Z0-9."""
    prefix = prefix or settings.coupon_code_prefix
    length = length or settings.coupon_code_length
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def calculate_discount(coupon: Coupon, subtotal: int) -> int:
    """Discount in cents a coupon grants on *subtotal*, never more than it."""
    if subtotal <= 0:
        return 0
    if coupon.discount_type == RewardKind.PERCENTAGE:
        discount = (subtotal * coupon.discount_value + 50) // 100
    elif coupon.discount_type in (RewardKind.FIXED_AMOUNT, RewardKind.FREE_ITEM):
        # free_item carries the item's price as its value
        discount = coupon.discount_value
    else:
        discount = 0
    return max(0, min(discount, subtotal))


def validate_coupon(coupon: Coupon, now: Optional[datetime] = None) -> CouponCheck:
    """Status and expiry check shared by verification and redemption."""
    now = now or utcnow()
    if coupon.status == CouponStatus.USED:
        return CouponCheck(False, REASON_USED, coupon)
    if coupon.status == CouponStatus.EXPIRED or now > coupon.valid_until:
        return CouponCheck(False, REASON_EXPIRED, coupon)
    return CouponCheck(True, None, coupon)


class CouponService:
    """Issues lottery coupons and answers wallet / verification queries."""

    def __init__(self, db: Session, rng=None):
        self.db = db
        self.rng = rng or _system_random

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def count_issued_today(self, restaurant_id: str, device_id: str, now: Optional[datetime] = None) -> int:
        since = local_midnight(now or utcnow())
        stmt = select(func.count(Coupon.id)).where(
            Coupon.restaurant_id == restaurant_id,
            Coupon.device_id == device_id,
            Coupon.created_at >= since,
        )
        return self.db.scalar(stmt) or 0

    def check_device_limit(self, restaurant_id: str, device_id: str, now: Optional[datetime] = None) -> bool:
        """True when the device already reached today's coupon cap."""
        count = self.count_issued_today(restaurant_id, device_id, now)
        logger.debug("Device %s has %d coupons today at %s", device_id, count, restaurant_id)
        return count >= settings.max_coupons_per_device_per_day

    def generate_coupon(
        self,
        campaign_id: int,
        restaurant_id: str,
        device_id: str,
        now: Optional[datetime] = None,
    ) -> DrawOutcome:
        """Run one scratch-card draw."""
        now = now or utcnow()

        if self.check_device_limit(restaurant_id, device_id, now):
            logger.info("Draw capped: restaurant=%s device=%s", restaurant_id, device_id)
            return DrawOutcome(won=False, message=LOSS_MESSAGE)

        campaign = self.db.get(Campaign, campaign_id)
        if campaign is None or campaign.restaurant_id != restaurant_id:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        if not campaign.is_active:
            raise ForbiddenError("This campaign is not active")
        if not isinstance(campaign, LotteryCampaign):
            raise ValidationError("Only lottery campaigns can be drawn", field="campaign_id")

        roll = self.rng.random() * 100
        won = roll < campaign.win_probability
        logger.info(
            "Draw campaign=%s device=%s roll=%.2f probability=%s won=%s",
            campaign.id, device_id, roll, campaign.win_probability, won,
        )
        if not won:
            return DrawOutcome(won=False, message=LOSS_MESSAGE)

        coupon = self._issue(campaign, device_id, now)
        return DrawOutcome(
            won=True,
            coupon=coupon,
            message=WIN_MESSAGE.format(description=coupon.discount_description),
        )

    def _code_taken(self, code: str) -> bool:
        return self.db.scalar(select(Coupon.id).where(Coupon.code == code)) is not None

    def _issue(self, campaign: LotteryCampaign, device_id: str, now: datetime) -> Coupon:
        """Persist a coupon under a fresh code within a bounded retry budget.

        The pre-check keeps collisions out of the common path; the unique
        index catches the race between two draws picking the same code.
        """
        attempts = settings.coupon_code_max_attempts
        for attempt in range(1, attempts + 1):
            code = generate_code()
            if self._code_taken(code):
                logger.warning("Coupon code collision on attempt %d", attempt)
                continue

            coupon = Coupon(
                restaurant_id=campaign.restaurant_id,
                campaign_id=campaign.id,
                code=code,
                status=CouponStatus.ACTIVE,
                discount_type=campaign.reward_kind,
                discount_value=campaign.reward_value,
                discount_description=campaign.reward_description or "",
                device_id=device_id,
                created_at=now,
                valid_until=now + timedelta(days=campaign.validity_days),
            )
            self.db.add(coupon)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning("Coupon code %s taken concurrently, retrying", code)
                continue

            self.db.refresh(coupon)
            logger.info("Coupon issued: id=%s code=%s campaign=%s", coupon.id, coupon.code, campaign.id)
            return coupon

        raise CodeGenerationError(f"Could not allocate a unique coupon code after {attempts} attempts")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, coupon_id: int) -> Coupon:
        coupon = self.db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFoundError(f"Coupon {coupon_id} not found")
        return coupon

    def get_by_code(self, restaurant_id: str, code: str) -> Optional[Coupon]:
        """Case-insensitive lookup scoped to a restaurant."""
        stmt = select(Coupon).where(
            Coupon.restaurant_id == restaurant_id,
            Coupon.code == code.strip().upper(),
        )
        return self.db.scalars(stmt).first()

    def get_by_device(self, restaurant_id: str, device_id: str) -> List[Coupon]:
        """Wallet of a device, newest first."""
        stmt = (
            select(Coupon)
            .where(Coupon.restaurant_id == restaurant_id, Coupon.device_id == device_id)
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
        )
        return list(self.db.scalars(stmt))

    def verify_code(self, restaurant_id: str, code: str, now: Optional[datetime] = None) -> CouponCheck:
        """Check a code presented at the table before it is applied.

        On top of status and expiry, a coupon is refused on the local day it
        was won unless ``coupon_same_day_use_allowed`` is set.
        """
        now = now or utcnow()
        coupon = self.get_by_code(restaurant_id, code)
        if coupon is None:
            return CouponCheck(False, REASON_NOT_FOUND)

        check = validate_coupon(coupon, now)
        if not check.valid:
            return check

        if not settings.coupon_same_day_use_allowed and coupon.created_at >= local_midnight(now):
            return CouponCheck(False, REASON_SAME_DAY, coupon)

        return check

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def expire_old_coupons(self, restaurant_id: Optional[str] = None, now: Optional[datetime] = None) -> int:
        """Mark active coupons past ``valid_until`` as expired.

        Scoped to one restaurant, or every restaurant when *restaurant_id* is
        None (periodic sweep). Returns the number of coupons expired.
        """
        now = now or utcnow()
        stmt = (
            update(Coupon)
            .where(Coupon.status == CouponStatus.ACTIVE, Coupon.valid_until < now)
            .values(status=CouponStatus.EXPIRED, version=Coupon.next_version())
            .execution_options(synchronize_session=False)
        )
        if restaurant_id is not None:
            stmt = stmt.where(Coupon.restaurant_id == restaurant_id)

        result = self.db.execute(stmt)
        self.db.commit()
        count = result.rowcount or 0
        logger.info("Expired %d coupons (restaurant=%s)", count, restaurant_id or "*")
        return count
