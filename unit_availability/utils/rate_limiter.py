"""
Rate Limiter Configuration

In-memory storage by default; Redis when REDIS_URL is set so that
limits are shared across instances.
"""

import logging
import os
from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind a reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First IP is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def get_storage_uri() -> Optional[str]:
    return os.getenv("REDIS_URL") or None


def create_limiter() -> Limiter:
    storage_uri = get_storage_uri()

    if storage_uri:
        logger.info("Using Redis storage for rate limiting")
        return Limiter(
            key_func=get_real_client_ip,
            storage_uri=storage_uri,
            default_limits=["200/minute"]
        )

    return Limiter(
        key_func=get_real_client_ip,
        default_limits=["200/minute"]
    )


# Global rate limiter instance
limiter = create_limiter()


RATE_LIMITS = {
    "availability_bulk": settings.bulk_rate_limit,
    "availability_write": "120/minute",
}


def get_rate_limit(operation: str) -> str:
    """Get rate limit for a specific operation."""
    return RATE_LIMITS.get(operation, "200/minute")
