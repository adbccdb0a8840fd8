"""API routes."""

from fastapi import APIRouter

from app.api.routes import campaigns, coupons, menu_pricing, orders

api_router = APIRouter()

api_router.include_router(campaigns.router, prefix="/campaigns", tags=["campaigns"])
api_router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(menu_pricing.router, prefix="/restaurants", tags=["menu", "pricing"])
