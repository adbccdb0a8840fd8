"""Live menu prices under the currently running timed promotion."""

from fastapi import APIRouter, Request
from sqlalchemy import select

from app.core.rate_limit import limiter
from app.core.validators import RestaurantIdPath
from app.db.base import utcnow
from app.db.session import DbSession
from app.models.product import Product
from app.schemas.menu_pricing import MenuPricesResponse, ProductPriceResponse, PromotionBanner
from app.services.campaign_service import CampaignService
from app.services.promotion_window import (
    find_active_promotion,
    format_promotion_schedule,
    format_time_remaining,
    get_product_price,
    get_time_until_end,
)

router = APIRouter()


@router.get("/{restaurant_id}/menu/prices")
@limiter.limit("120/minute")
async def get_menu_prices(request: Request, restaurant_id: RestaurantIdPath, db: DbSession):
    """Available products with their live price and the promotion banner."""
    now = utcnow()
    campaigns = CampaignService(db).list_active(restaurant_id)
    promotion = find_active_promotion(campaigns, now)

    products = db.scalars(
        select(Product)
        .where(Product.restaurant_id == restaurant_id, Product.is_available.is_(True))
        .order_by(Product.category_id, Product.sort_order, Product.id)
    ).all()

    items = []
    for product in products:
        price = get_product_price(product, promotion)
        items.append(
            ProductPriceResponse(
                product_id=product.id,
                category_id=product.category_id,
                name=product.name,
                price=price.price,
                original_price=price.original_price,
                has_discount=price.has_discount,
            )
        )

    banner = None
    if promotion is not None:
        remaining = get_time_until_end(promotion, now)
        banner = PromotionBanner(
            campaign_id=promotion.id,
            name=promotion.name,
            banner_text=promotion.banner_text,
            schedule=format_promotion_schedule(promotion),
            time_remaining=format_time_remaining(remaining) if remaining is not None else None,
            seconds_remaining=int(remaining.total_seconds()) if remaining is not None else None,
        )

    return MenuPricesResponse(
        restaurant_id=restaurant_id, banner=banner, items=items, total=len(items)
    ).model_dump(mode="json")
