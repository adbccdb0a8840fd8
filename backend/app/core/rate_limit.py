"""Shared rate limiter instance for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def get_device_or_ip(request: Request) -> str:
    """Rate limit lottery draws by device header when present, else by IP."""
    device_id = request.headers.get("X-Device-Id", "").strip()
    if device_id:
        return f"device:{device_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

device_limiter = Limiter(key_func=get_device_or_ip, enabled=settings.rate_limit_enabled)
