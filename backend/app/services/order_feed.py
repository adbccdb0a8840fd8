"""Live order feed for kitchen screens and table trackers.

Subscribers always receive the *full* list of a restaurant's orders, never
deltas; column counts and anything else derived are recomputed from that
snapshot by ``build_kitchen_board``. Publishing is safe from the sync route
threadpool: delivery is handed to each subscriber's event loop.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from app.models.order import Order, OrderStatus
from app.schemas.order import OrderResponse

logger = logging.getLogger(__name__)

KITCHEN_COLUMNS = [
    ("pending_validation", [OrderStatus.PENDING_VALIDATION]),
    ("preparing", [OrderStatus.PREPARING]),
    ("ready", [OrderStatus.READY, OrderStatus.SERVED]),
]


def serialize_order(order: Order) -> Dict[str, Any]:
    return OrderResponse.model_validate(order).model_dump(mode="json")


def build_kitchen_board(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    """Split an order snapshot into kitchen columns.

    Rejected orders do not appear on the board. Order inside a column follows
    the snapshot (newest first).
    """
    orders = list(orders)
    columns = []
    for key, statuses in KITCHEN_COLUMNS:
        members = [o for o in orders if o.status in statuses]
        columns.append({"key": key, "statuses": statuses, "count": len(members), "orders": members})
    return columns


def build_order_snapshot(restaurant_id: str, orders: Iterable[Order]) -> Dict[str, Any]:
    """JSON-ready message pushed to feed subscribers."""
    orders = list(orders)
    board = build_kitchen_board(orders)
    return {
        "type": "orders_snapshot",
        "restaurant_id": restaurant_id,
        "orders": [serialize_order(o) for o in orders],
        "counts": {column["key"]: column["count"] for column in board},
    }


class OrderFeed:
    """In-process publish/subscribe of order snapshots per restaurant."""

    def __init__(self):
        # Guards _subscribers: publish runs on threadpool threads
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Set[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}

    def subscribe(self, restaurant_id: str) -> asyncio.Queue:
        """Register the calling coroutine's loop; returns its snapshot queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        loop = asyncio.get_running_loop()
        with self._lock:
            self._subscribers.setdefault(restaurant_id, set()).add((loop, queue))
        logger.info("Order feed subscriber added for %s (%d total)", restaurant_id, self.subscriber_count(restaurant_id))
        return queue

    def unsubscribe(self, restaurant_id: str, queue: asyncio.Queue) -> None:
        with self._lock:
            subscribers = self._subscribers.get(restaurant_id, set())
            for entry in [e for e in subscribers if e[1] is queue]:
                subscribers.discard(entry)
            if not subscribers:
                self._subscribers.pop(restaurant_id, None)
        logger.info("Order feed subscriber removed for %s", restaurant_id)

    def subscriber_count(self, restaurant_id: Optional[str] = None) -> int:
        with self._lock:
            if restaurant_id is not None:
                return len(self._subscribers.get(restaurant_id, ()))
            return sum(len(s) for s in self._subscribers.values())

    def has_subscribers(self, restaurant_id: str) -> bool:
        with self._lock:
            return bool(self._subscribers.get(restaurant_id))

    def publish(self, restaurant_id: str, snapshot: Dict[str, Any]) -> int:
        """Offer *snapshot* to every subscriber of the restaurant."""
        with self._lock:
            targets = list(self._subscribers.get(restaurant_id, ()))
        delivered = 0
        for loop, queue in targets:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(self._offer, queue, snapshot)
            delivered += 1
        return delivered

    @staticmethod
    def _offer(queue: asyncio.Queue, snapshot: Dict[str, Any]) -> None:
        # Only the latest snapshot matters; replace a pending one
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)


order_feed = OrderFeed()
