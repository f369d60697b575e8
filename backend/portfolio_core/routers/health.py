# backend/portfolio_core/routers/health.py
"""
Health endpoints.

- GET /health - Price cache connectivity and provider circuit states
- GET /health/live - Liveness probe

The price cache is the only critical dependency (503 when down). An open
provider circuit only degrades the status: resolution still answers,
falling back to other providers or to cost basis.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from portfolio_core.config import settings
from portfolio_core.database import check_database_health
from portfolio_core.dependencies import get_provider_breakers
from portfolio_core.middleware.rate_limit import limiter, RATE_LIMIT_HEALTH
from portfolio_core.services.circuit_breaker import CircuitBreaker, CircuitState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(
        request: Request,
        breakers: list[CircuitBreaker] = Depends(get_provider_breakers),
):
    """
    **Response Status Codes:**
    - 200: healthy, or degraded when a provider circuit is open
    - 503: price cache unreachable
    """
    checks: dict[str, dict] = {}
    overall_status = "healthy"

    if settings.cache_backend == "sql":
        database = check_database_health()
        checks["price_cache"] = {**database, "critical": True}
        if database["status"] != "healthy":
            overall_status = "unhealthy"
    else:
        checks["price_cache"] = {"status": "healthy", "backend": "memory", "critical": True}

    for breaker in breakers:
        state = breaker.state
        checks[breaker.name] = {
            "status": "unhealthy" if state == CircuitState.OPEN else "healthy",
            "critical": False,
            "circuit_breaker_state": state.value,
            "consecutive_failures": breaker.failure_count,
        }
        if state == CircuitState.OPEN and overall_status == "healthy":
            overall_status = "degraded"

    response_data = {"status": overall_status, "checks": checks}

    if overall_status == "unhealthy":
        logger.error("Health check failed: price cache unavailable")
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@router.get("/health/live")
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """Always 200 while the process is alive; dependencies are not checked."""
    return {"status": "alive"}
