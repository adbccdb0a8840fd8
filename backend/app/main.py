"""FastAPI application entry point."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import api_router
from app.core.config import settings
from app.core.exceptions import PromotionEngineError
from app.core.rate_limit import device_limiter, limiter
from app.core.validators import RestaurantIdPath
from app.db.base import Base
from app.db.session import SessionLocal, engine, get_db
from app.services.coupon_service import CouponService
from app.services.order_feed import build_order_snapshot, order_feed
from app.services.order_service import OrderService

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    import json as _json
    import sys

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return _json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.error(
                "Error: %s %s - Exception: %s - Time: %.3fs - Client: %s",
                request.method, request.url.path, e, time.time() - start_time, client_ip,
            )
            raise

        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            "Response: %s %s - Status: %s - Time: %.3fs - Client: %s",
            request.method, request.url.path, response.status_code, time.time() - start_time, client_ip,
        )
        return response


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent folder of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def _periodic_coupon_expiry():
    """Sweep overdue active coupons to expired on a fixed interval."""
    interval = settings.coupon_expiry_sweep_minutes * 60
    while True:
        try:
            await asyncio.sleep(interval)
            db = SessionLocal()
            try:
                expired = CouponService(db).expire_old_coupons()
            finally:
                db.close()
            if expired:
                logger.info("Periodic sweep: %d coupons expired", expired)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("Periodic coupon expiry error: %s", e, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Promotion Engine")

    # Create tables if they don't exist (for SQLite dev)
    # In production with PostgreSQL, use Alembic migrations
    if settings.database_url.startswith("sqlite"):
        _ensure_sqlite_directory(settings.database_url)
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    sweep_task = asyncio.create_task(_periodic_coupon_expiry())
    logger.info(
        "Background coupon expiry started (runs every %d minutes)", settings.coupon_expiry_sweep_minutes
    )

    yield

    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass

    logger.info("Shutting down Promotion Engine")


app = FastAPI(
    title="Restaurant Promotion Engine",
    description="Campaigns, lottery coupons, happy-hour pricing and table orders",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.state.device_limiter = device_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def promotion_engine_error_handler(request: Request, exc: PromotionEngineError):
    """Render domain errors as {"error", "detail", "retryable"}."""
    log_level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(log_level, "%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_exception_handler(PromotionEngineError, promotion_engine_error_handler)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
        "X-Request-ID",
        "X-Device-Id",
    ],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight for 10 minutes
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/health/ready")
def readiness_check(db: Session = Depends(get_db)):
    """Readiness check: database reachable and live feed state."""
    checks = {"database": "unknown", "order_feed": f"{order_feed.subscriber_count()} subscribers"}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {e}"
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})
    return {"status": "ready", "checks": checks}


async def _forward_snapshots(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        snapshot = await queue.get()
        await websocket.send_json(snapshot)


@app.websocket("/ws/orders/{restaurant_id}")
async def websocket_orders(
    websocket: WebSocket,
    restaurant_id: RestaurantIdPath,
    db: Session = Depends(get_db),
):
    """Push the full order list of a restaurant on every change.

    The first message is the current snapshot; the client may send "ping"
    and gets "pong" back.
    """
    await websocket.accept()
    queue = order_feed.subscribe(restaurant_id)
    sender = None
    try:
        snapshot = build_order_snapshot(restaurant_id, OrderService(db).list_orders(restaurant_id))
        # Later snapshots come from the feed; release the connection now
        db.close()
        await websocket.send_json(snapshot)
        sender = asyncio.create_task(_forward_snapshots(websocket, queue))
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug("Order feed client for %s disconnected", restaurant_id)
    finally:
        order_feed.unsubscribe(restaurant_id, queue)
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("Order feed sender for %s stopped: %s", restaurant_id, e)
