# backend/portfolio_core/middleware/__init__.py
"""
ASGI middleware: correlation IDs and inbound rate limiting.

Usage:
    from portfolio_core.middleware import CorrelationIdMiddleware, limiter

    app.add_middleware(CorrelationIdMiddleware)
    app.state.limiter = limiter
"""

from portfolio_core.middleware.correlation import CorrelationIdMiddleware
from portfolio_core.middleware.rate_limit import (
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_PRICES,
    RATE_LIMIT_HISTORY,
    RATE_LIMIT_HEALTH,
)

__all__ = [
    "CorrelationIdMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_PRICES",
    "RATE_LIMIT_HISTORY",
    "RATE_LIMIT_HEALTH",
]
