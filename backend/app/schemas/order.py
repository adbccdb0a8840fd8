"""Table order schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.order import OrderStatus


class OrderItemOption(BaseModel):
    """Selected option on a line (size, extra topping...)."""
    name: str = Field(..., min_length=1, max_length=100)
    price_modifier: int = 0


class OrderItem(BaseModel):
    """Line item snapshot taken from the cart at checkout."""
    product_id: int = Field(..., gt=0)
    product_name: str = Field(..., min_length=1, max_length=100)
    unit_price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1, le=99)
    options: List[OrderItemOption] = Field(default_factory=list)
    special_instructions: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    table_id: str = Field(..., min_length=1, max_length=64)
    table_label: str = Field(..., min_length=1, max_length=50)
    customer_session_id: Optional[str] = Field(None, max_length=128)
    customer_note: Optional[str] = Field(None, max_length=500)
    items: List[OrderItem] = Field(..., min_length=1)
    coupon_id: Optional[int] = Field(None, gt=0)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    rejection_reason: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    restaurant_id: str
    table_id: str
    table_label: str
    customer_session_id: Optional[str] = None
    customer_note: Optional[str] = None
    items: List[OrderItem]
    subtotal: int
    coupon_id: Optional[int] = None
    discount_amount: Optional[int] = None
    total_amount: int
    status: OrderStatus
    rejection_reason: Optional[str] = None
    validated_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    served_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class KitchenColumn(BaseModel):
    key: str
    statuses: List[OrderStatus]
    count: int
    orders: List[OrderResponse]


class KitchenBoard(BaseModel):
    restaurant_id: str
    total: int
    columns: List[KitchenColumn]
