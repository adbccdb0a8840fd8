"""Live menu pricing schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class ProductPriceResponse(BaseModel):
    product_id: int
    category_id: str
    name: str
    price: int
    original_price: Optional[int] = None
    has_discount: bool = False


class PromotionBanner(BaseModel):
    campaign_id: int
    name: str
    banner_text: str
    schedule: str
    time_remaining: Optional[str] = None
    seconds_remaining: Optional[int] = None


class MenuPricesResponse(BaseModel):
    restaurant_id: str
    banner: Optional[PromotionBanner] = None
    items: List[ProductPriceResponse]
    total: int
