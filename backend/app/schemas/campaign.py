"""Campaign schemas.

Create payloads are a discriminated union on ``kind`` so a lottery body can
never carry happy-hour rules and vice versa. Range checks live in
``CampaignService`` so create and update share one rule set.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.models.campaign import DiscountType, Recurrence, RewardKind


class CampaignBase(BaseModel):
    """Fields shared by both campaign kinds."""
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    name: str
    is_active: bool = True


class LotteryCampaignCreate(CampaignBase):
    """Scratch-card lottery."""
    kind: Literal["lottery"] = "lottery"
    win_probability: float
    reward_kind: RewardKind
    reward_value: int
    reward_description: str = ""
    validity_days: int


class TimedPromotionCreate(CampaignBase):
    """Happy hour or one-shot event."""
    kind: Literal["timed_promotion"] = "timed_promotion"
    recurrence: Recurrence
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_of_week: Optional[List[int]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    discount_type: DiscountType
    discount_value: int
    target_categories: List[str] = Field(default_factory=list)
    banner_text: str


CampaignCreate = Annotated[
    Union[LotteryCampaignCreate, TimedPromotionCreate],
    Field(discriminator="kind"),
]


class CampaignUpdate(BaseModel):
    """Partial update. ``kind`` and ``restaurant_id`` cannot change."""
    name: Optional[str] = None
    is_active: Optional[bool] = None

    # lottery
    win_probability: Optional[float] = None
    reward_kind: Optional[RewardKind] = None
    reward_value: Optional[int] = None
    reward_description: Optional[str] = None
    validity_days: Optional[int] = None

    # timed promotion
    recurrence: Optional[Recurrence] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_of_week: Optional[List[int]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = None
    target_categories: Optional[List[str]] = None
    banner_text: Optional[str] = None


class CampaignActiveToggle(BaseModel):
    is_active: bool


class CampaignResponse(BaseModel):
    """Campaign as returned by the API; variant fields are null on the other kind."""
    id: int
    restaurant_id: str
    kind: str
    name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    win_probability: Optional[float] = None
    reward_kind: Optional[RewardKind] = None
    reward_value: Optional[int] = None
    reward_description: Optional[str] = None
    validity_days: Optional[int] = None

    recurrence: Optional[Recurrence] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_of_week: Optional[List[int]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = None
    target_categories: Optional[List[str]] = None
    banner_text: Optional[str] = None

    model_config = {"from_attributes": True}
