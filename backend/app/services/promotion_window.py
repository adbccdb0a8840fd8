"""Timed promotion evaluation (happy hours, special events).

Pure functions over campaign and product objects: nothing here touches the
database, so the menu pricing endpoint and the live feeds can call them on
every render. ``now`` is interpreted in the restaurant timezone from
settings; naive datetimes are taken as already local.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Iterable, Optional

from app.core.config import settings
from app.models.campaign import CampaignKind, DiscountType, Recurrence

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class ProductPrice:
    """Price shown on the menu for one product."""

    price: int
    original_price: Optional[int] = None
    has_discount: bool = False


def parse_hhmm(value: str) -> time:
    """Parse a ``HH:MM`` 24h string. Raises ValueError on anything else."""
    match = HHMM_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def _zone(tz: Optional[tzinfo]) -> tzinfo:
    return tz or settings.tzinfo


def to_local(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Express *moment* in the restaurant timezone."""
    zone = _zone(tz)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def weekday_sunday_first(moment: datetime) -> int:
    """0 = Sunday .. 6 = Saturday (Python's weekday() is Monday-first)."""
    return (moment.weekday() + 1) % 7


def local_midnight(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Start of the local day containing *moment*, as an aware datetime."""
    local = to_local(moment, tz)
    return datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)


def is_promotion_active(campaign, now: datetime, tz: Optional[tzinfo] = None) -> bool:
    """Whether a timed promotion's window contains *now*.

    Lotteries, inactive campaigns and campaigns with incomplete rules are
    never active. Both window bounds are inclusive.
    """
    if getattr(campaign, "kind", None) != CampaignKind.TIMED_PROMOTION.value:
        return False
    if not campaign.is_active or not campaign.has_rules:
        return False

    local_now = to_local(now, tz)

    if campaign.recurrence == Recurrence.ONE_SHOT:
        start = to_local(campaign.start_date, tz)
        end = to_local(campaign.end_date, tz)
        return start <= local_now <= end

    if campaign.recurrence == Recurrence.RECURRING:
        if weekday_sunday_first(local_now) not in campaign.days_of_week:
            return False
        # Minute resolution: 20:00:59 is still inside a window ending at 20:00
        current = local_now.time().replace(second=0, microsecond=0)
        return parse_hhmm(campaign.start_time) <= current <= parse_hhmm(campaign.end_time)

    return False


def calculate_discounted_price(price: int, discount_type: DiscountType, value: int) -> int:
    """Apply a promotion discount to a price in cents, never below zero.

    Percentages round half away from zero on the discount amount.
    """
    if discount_type == DiscountType.PERCENTAGE:
        discount = (price * value + 50) // 100
        return max(0, price - discount)
    if discount_type == DiscountType.FIXED:
        return max(0, price - value)
    return price


def is_product_eligible(product, campaign) -> bool:
    """An empty category filter means every product is eligible."""
    targets = campaign.target_categories or []
    if not targets:
        return True
    return product.category_id in targets


def get_product_price(product, active_campaign) -> ProductPrice:
    """Price to display for *product* given the currently active promotion."""
    if (
        active_campaign is None
        or getattr(active_campaign, "kind", None) != CampaignKind.TIMED_PROMOTION.value
        or not active_campaign.has_discount
        or not is_product_eligible(product, active_campaign)
    ):
        return ProductPrice(price=product.price)

    discounted = calculate_discounted_price(
        product.price, active_campaign.discount_type, active_campaign.discount_value
    )
    return ProductPrice(price=discounted, original_price=product.price, has_discount=True)


def get_time_until_end(campaign, now: datetime, tz: Optional[tzinfo] = None) -> Optional[timedelta]:
    """Time left before the promotion window closes, or None once it has."""
    if not getattr(campaign, "has_rules", False):
        return None

    local_now = to_local(now, tz)

    if campaign.recurrence == Recurrence.ONE_SHOT:
        end = to_local(campaign.end_date, tz)
        if local_now > end:
            return None
        return end - local_now

    if campaign.recurrence == Recurrence.RECURRING:
        end_today = datetime.combine(
            local_now.date(), parse_hhmm(campaign.end_time), tzinfo=local_now.tzinfo
        )
        if end_today > local_now:
            return end_today - local_now

    return None


def find_active_promotion(campaigns: Iterable, now: datetime, tz: Optional[tzinfo] = None):
    """First timed promotion of the snapshot whose window contains *now*.

    The snapshot is expected newest first, so the most recent campaign wins
    when several overlap.
    """
    for campaign in campaigns:
        if is_promotion_active(campaign, now, tz):
            return campaign
    return None


def format_time_remaining(remaining: timedelta) -> str:
    """'1h 5min', '12min' or '30s'."""
    seconds = max(0, int(remaining.total_seconds()))
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}min"
    if minutes > 0:
        return f"{minutes}min"
    return f"{seconds}s"


def format_promotion_schedule(campaign, tz: Optional[tzinfo] = None) -> str:
    if not getattr(campaign, "has_rules", False):
        return ""

    if campaign.recurrence == Recurrence.ONE_SHOT:
        start = to_local(campaign.start_date, tz)
        end = to_local(campaign.end_date, tz)
        return f"From {start:%d %B %Y} to {end:%d %B %Y}"

    days = ", ".join(DAY_NAMES[day] for day in sorted(campaign.days_of_week))
    return f"{days} from {campaign.start_time} to {campaign.end_time}"
