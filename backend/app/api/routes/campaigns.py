"""Campaign routes (lotteries and timed promotions)."""

from typing import Optional

from fastapi import APIRouter, Body, Request

from app.core.rate_limit import limiter
from app.core.responses import list_response
from app.core.validators import PositiveIntId, RestaurantIdQuery
from app.db.session import DbSession
from app.schemas.campaign import (
    CampaignActiveToggle,
    CampaignCreate,
    CampaignResponse,
    CampaignUpdate,
)
from app.services.campaign_service import CampaignService

router = APIRouter()


def _serialize_campaign(campaign) -> dict:
    return CampaignResponse.model_validate(campaign).model_dump(mode="json")


@router.post("/", status_code=201)
@limiter.limit("30/minute")
async def create_campaign(request: Request, db: DbSession, data: CampaignCreate = Body(...)):
    """Create a lottery or timed promotion campaign."""
    campaign = CampaignService(db).create(data)
    return _serialize_campaign(campaign)


@router.get("/")
@limiter.limit("60/minute")
async def list_campaigns(
    request: Request,
    db: DbSession,
    restaurant_id: RestaurantIdQuery,
    active: Optional[bool] = None,
):
    """List a restaurant's campaigns, newest first.

    ``active=true`` returns only the active ones.
    """
    service = CampaignService(db)
    if active:
        campaigns = service.list_active(restaurant_id)
    else:
        campaigns = service.list_by_restaurant(restaurant_id)
        if active is False:
            campaigns = [c for c in campaigns if not c.is_active]
    return list_response([_serialize_campaign(c) for c in campaigns])


@router.get("/{campaign_id}")
@limiter.limit("60/minute")
async def get_campaign(request: Request, campaign_id: PositiveIntId, db: DbSession):
    return _serialize_campaign(CampaignService(db).get_by_id(campaign_id))


@router.patch("/{campaign_id}")
@limiter.limit("30/minute")
async def update_campaign(request: Request, campaign_id: PositiveIntId, data: CampaignUpdate, db: DbSession):
    """Partial update; the merged campaign is re-validated as a whole."""
    campaign = CampaignService(db).update(campaign_id, data)
    return _serialize_campaign(campaign)


@router.patch("/{campaign_id}/active")
@limiter.limit("30/minute")
async def set_campaign_active(
    request: Request, campaign_id: PositiveIntId, data: CampaignActiveToggle, db: DbSession
):
    campaign = CampaignService(db).toggle_active(campaign_id, data.is_active)
    return _serialize_campaign(campaign)


@router.delete("/{campaign_id}")
@limiter.limit("30/minute")
async def delete_campaign(request: Request, campaign_id: PositiveIntId, db: DbSession):
    """Delete a campaign. Coupons already issued from it are kept."""
    CampaignService(db).delete(campaign_id)
    return {"success": True, "id": campaign_id}
