# backend/portfolio_core/routers/__init__.py
"""
API routers.

- prices: Batch price resolution
- portfolio: Valuation, history and analysis of an asset snapshot
- health: Liveness and dependency checks
"""

from portfolio_core.routers.health import router as health_router
from portfolio_core.routers.portfolio import router as portfolio_router
from portfolio_core.routers.prices import router as prices_router

__all__ = [
    "health_router",
    "portfolio_router",
    "prices_router",
]
