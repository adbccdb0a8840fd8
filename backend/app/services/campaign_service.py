"""Campaign Store - CRUD for lottery and timed promotion campaigns.

Every create/update runs the full validation rule set on the resulting
definition before anything is written, so a rejected request never leaves a
half-updated campaign behind. Deleting a campaign leaves its coupons alone:
they carry their own copy of the reward terms.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.campaign import (
    Campaign,
    CampaignKind,
    DiscountType,
    LotteryCampaign,
    Recurrence,
    RewardKind,
    TimedPromotionCampaign,
)
from app.schemas.campaign import CampaignUpdate, LotteryCampaignCreate, TimedPromotionCreate
from app.services.promotion_window import parse_hhmm, to_local

logger = logging.getLogger(__name__)

COMMON_FIELDS = {"name", "is_active"}

LOTTERY_FIELDS = {
    "win_probability",
    "reward_kind",
    "reward_value",
    "reward_description",
    "validity_days",
}

TIMED_PROMOTION_FIELDS = {
    "recurrence",
    "start_date",
    "end_date",
    "days_of_week",
    "start_time",
    "end_time",
    "discount_type",
    "discount_value",
    "target_categories",
    "banner_text",
}

FIELDS_BY_KIND = {
    CampaignKind.LOTTERY.value: LOTTERY_FIELDS,
    CampaignKind.TIMED_PROMOTION.value: TIMED_PROMOTION_FIELDS,
}


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Campaign name is required", field="name")
    if len(name) > settings.campaign_name_max:
        raise ValidationError(
            f"Campaign name must be at most {settings.campaign_name_max} characters",
            field="name",
        )
    return name


def validate_lottery(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check a complete lottery definition and return it normalised."""
    out = dict(fields)

    probability = fields.get("win_probability")
    if probability is None or not 0 <= probability <= 100:
        raise ValidationError("Win probability must be between 0 and 100", field="win_probability")

    validity = fields.get("validity_days")
    lo, hi = settings.campaign_min_validity_days, settings.campaign_max_validity_days
    if validity is None or not lo <= validity <= hi:
        raise ValidationError(
            f"Validity must be between {lo} and {hi} days", field="validity_days"
        )

    reward_kind = fields.get("reward_kind")
    if reward_kind is None:
        raise ValidationError("Reward type is required", field="reward_kind")
    reward_kind = RewardKind(reward_kind)
    out["reward_kind"] = reward_kind

    value = fields.get("reward_value")
    if value is None or value < 0:
        raise ValidationError("Reward value must be zero or positive", field="reward_value")
    if reward_kind == RewardKind.PERCENTAGE and value > 100:
        raise ValidationError("A percentage reward cannot exceed 100", field="reward_value")

    description = (fields.get("reward_description") or "").strip()
    if len(description) > settings.reward_description_max:
        raise ValidationError(
            f"Reward description must be at most {settings.reward_description_max} characters",
            field="reward_description",
        )
    out["reward_description"] = description
    return out


def validate_timed_promotion(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check a complete timed promotion definition and return it normalised.

    Rules that do not apply to the chosen recurrence are cleared so a
    recurring happy hour never keeps stale one-shot dates around.
    """
    out = dict(fields)

    recurrence = fields.get("recurrence")
    if recurrence is None:
        raise ValidationError("Recurrence is required", field="recurrence")
    recurrence = Recurrence(recurrence)
    out["recurrence"] = recurrence

    if recurrence == Recurrence.ONE_SHOT:
        start, end = fields.get("start_date"), fields.get("end_date")
        if start is None or end is None:
            raise ValidationError("Start and end dates are required", field="start_date")
        start, end = to_local(start), to_local(end)
        if end < start:
            raise ValidationError("End date must be on or after start date", field="end_date")
        out.update(start_date=start, end_date=end, days_of_week=None, start_time=None, end_time=None)
    else:
        days = fields.get("days_of_week") or []
        if not days:
            raise ValidationError("Select at least one day of the week", field="days_of_week")
        if any(not isinstance(day, int) or not 0 <= day <= 6 for day in days):
            raise ValidationError("Days of week must be between 0 (Sunday) and 6", field="days_of_week")
        try:
            start_time = parse_hhmm(fields.get("start_time"))
        except ValueError as exc:
            raise ValidationError(str(exc), field="start_time") from exc
        try:
            end_time = parse_hhmm(fields.get("end_time"))
        except ValueError as exc:
            raise ValidationError(str(exc), field="end_time") from exc
        # Windows never wrap past midnight
        if end_time <= start_time:
            raise ValidationError("End time must be after start time", field="end_time")
        out.update(days_of_week=sorted(set(days)), start_date=None, end_date=None)

    discount_type = fields.get("discount_type")
    if discount_type is None:
        raise ValidationError("Discount type is required", field="discount_type")
    discount_type = DiscountType(discount_type)
    out["discount_type"] = discount_type

    value = fields.get("discount_value")
    if value is None or value <= 0:
        raise ValidationError("Discount value must be positive", field="discount_value")
    if discount_type == DiscountType.PERCENTAGE and value > 100:
        raise ValidationError("A percentage discount cannot exceed 100", field="discount_value")

    banner = (fields.get("banner_text") or "").strip()
    if not banner:
        raise ValidationError("Banner text is required", field="banner_text")
    if len(banner) > settings.banner_text_max:
        raise ValidationError(
            f"Banner text must be at most {settings.banner_text_max} characters",
            field="banner_text",
        )
    out["banner_text"] = banner
    out["target_categories"] = list(fields.get("target_categories") or [])
    return out


def validate_definition(kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(fields)
    out["name"] = _validate_name(fields.get("name"))
    if not isinstance(fields.get("is_active", True), bool):
        raise ValidationError("is_active must be true or false", field="is_active")
    if kind == CampaignKind.LOTTERY.value:
        return validate_lottery(out)
    if kind == CampaignKind.TIMED_PROMOTION.value:
        return validate_timed_promotion(out)
    raise ValidationError(f"Unknown campaign kind '{kind}'", field="kind")


class CampaignService:
    """Service for campaign persistence."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: Union[LotteryCampaignCreate, TimedPromotionCreate]) -> Campaign:
        payload = data.model_dump(exclude={"kind", "restaurant_id"})
        fields = validate_definition(data.kind, payload)

        model = LotteryCampaign if data.kind == CampaignKind.LOTTERY.value else TimedPromotionCampaign
        campaign = model(restaurant_id=data.restaurant_id, **fields)
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)

        logger.info(
            "Campaign created: id=%s kind=%s restaurant=%s",
            campaign.id, campaign.kind, campaign.restaurant_id,
        )
        return campaign

    def get_by_id(self, campaign_id: int) -> Campaign:
        campaign = self.db.get(Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign

    def list_by_restaurant(self, restaurant_id: str) -> List[Campaign]:
        """All campaigns of a restaurant, newest first."""
        stmt = (
            select(Campaign)
            .where(Campaign.restaurant_id == restaurant_id)
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        )
        return list(self.db.scalars(stmt))

    def list_active(self, restaurant_id: str) -> List[Campaign]:
        stmt = (
            select(Campaign)
            .where(Campaign.restaurant_id == restaurant_id, Campaign.is_active.is_(True))
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        )
        return list(self.db.scalars(stmt))

    def update(self, campaign_id: int, data: CampaignUpdate) -> Campaign:
        """Apply a partial update after validating the merged definition."""
        campaign = self.get_by_id(campaign_id)
        changes = data.model_dump(exclude_unset=True)

        allowed = COMMON_FIELDS | FIELDS_BY_KIND[campaign.kind]
        foreign = sorted(set(changes) - allowed)
        if foreign:
            raise ValidationError(
                f"Field '{foreign[0]}' does not apply to {campaign.kind} campaigns",
                field=foreign[0],
            )

        current = {name: getattr(campaign, name) for name in allowed}
        merged = validate_definition(campaign.kind, {**current, **changes})

        for name, value in merged.items():
            setattr(campaign, name, value)
        self.db.commit()
        self.db.refresh(campaign)

        logger.info("Campaign updated: id=%s fields=%s", campaign.id, sorted(changes))
        return campaign

    def toggle_active(self, campaign_id: int, is_active: bool) -> Campaign:
        campaign = self.get_by_id(campaign_id)
        campaign.is_active = is_active
        self.db.commit()
        self.db.refresh(campaign)
        logger.info("Campaign %s %s", campaign.id, "activated" if is_active else "deactivated")
        return campaign

    def delete(self, campaign_id: int) -> None:
        """Delete a campaign. Coupons issued from it stay valid."""
        campaign = self.get_by_id(campaign_id)
        self.db.delete(campaign)
        self.db.commit()
        logger.info("Campaign deleted: id=%s", campaign_id)
