# backend/portfolio_core/middleware/rate_limit.py
"""
Inbound rate limiting with slowapi.

Every pricing call fans out to rate-limited upstream providers, so the
endpoints that trigger upstream traffic carry tighter limits than the
default. Limits live in services/constants.py.

Key: client IP (first X-Forwarded-For hop when present)
Storage: in-memory, per process

Usage:
    @router.post("/prices")
    @limiter.limit(RATE_LIMIT_PRICES)
    def resolve_prices(request: Request, ...):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from portfolio_core.config import settings
from portfolio_core.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_PRICES,
    RATE_LIMIT_HISTORY,
    RATE_LIMIT_HEALTH,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    # Tests hammer the same endpoints from one client
    enabled=not settings.is_test,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 response in the same envelope as every other API error."""
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"
    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests. {limit_info}",
            "details": {"retry_after": RETRY_AFTER_SECONDS},
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_PRICES",
    "RATE_LIMIT_HISTORY",
    "RATE_LIMIT_HEALTH",
]
