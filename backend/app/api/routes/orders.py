"""Table order routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request

from app.core.rate_limit import limiter
from app.core.responses import list_response
from app.core.validators import PositiveIntId, RestaurantIdQuery
from app.db.session import DbSession
from app.models.order import OrderStatus
from app.schemas.order import KitchenBoard, KitchenColumn, OrderCreate, OrderResponse, OrderStatusUpdate
from app.services.order_feed import build_kitchen_board, build_order_snapshot, order_feed, serialize_order
from app.services.order_service import OrderService

router = APIRouter()


def _publish_snapshot(service: OrderService, restaurant_id: str) -> None:
    """Push the restaurant's full order list to live subscribers."""
    if not order_feed.has_subscribers(restaurant_id):
        return
    snapshot = build_order_snapshot(restaurant_id, service.list_orders(restaurant_id))
    order_feed.publish(restaurant_id, snapshot)


@router.post("/", status_code=201)
@limiter.limit("30/minute")
def create_order(request: Request, data: OrderCreate, db: DbSession):
    """Place a table order, redeeming ``coupon_id`` in the same transaction.

    Runs in the threadpool: redemption backs off with a blocking sleep
    between conflicting attempts.
    """
    service = OrderService(db)
    order = service.create_order(data)
    _publish_snapshot(service, order.restaurant_id)
    return serialize_order(order)


@router.get("/board")
@limiter.limit("60/minute")
async def get_kitchen_board(request: Request, db: DbSession, restaurant_id: RestaurantIdQuery):
    """Kitchen columns computed from the full order snapshot."""
    orders = OrderService(db).list_orders(restaurant_id)
    columns = [
        KitchenColumn(
            key=column["key"],
            statuses=column["statuses"],
            count=column["count"],
            orders=[OrderResponse.model_validate(o) for o in column["orders"]],
        )
        for column in build_kitchen_board(orders)
    ]
    board = KitchenBoard(
        restaurant_id=restaurant_id,
        total=sum(column.count for column in columns),
        columns=columns,
    )
    return board.model_dump(mode="json")


@router.get("/")
@limiter.limit("60/minute")
async def list_orders(
    request: Request,
    db: DbSession,
    restaurant_id: RestaurantIdQuery,
    table_id: Optional[str] = Query(None, max_length=64),
    status: Optional[OrderStatus] = None,
    customer_session_id: Optional[str] = Query(None, max_length=128),
):
    """Orders of a restaurant, newest first, optionally for one table."""
    orders = OrderService(db).list_orders(
        restaurant_id,
        table_id=table_id,
        status=status,
        customer_session_id=customer_session_id,
    )
    return list_response([serialize_order(o) for o in orders])


@router.get("/{order_id}")
@limiter.limit("60/minute")
async def get_order(request: Request, order_id: PositiveIntId, db: DbSession):
    return serialize_order(OrderService(db).get_order(order_id))


@router.put("/{order_id}/status")
@limiter.limit("60/minute")
def update_order_status(request: Request, order_id: PositiveIntId, data: OrderStatusUpdate, db: DbSession):
    """Advance an order through the kitchen workflow."""
    service = OrderService(db)
    order = service.update_order_status(order_id, data.status, data.rejection_reason)
    _publish_snapshot(service, order.restaurant_id)
    return serialize_order(order)
