# backend/portfolio_core/services/pricing/__init__.py
"""
Price resolution: request types, provider chains and the resolver.

Usage:
    from portfolio_core.services.pricing import PriceResolver, PriceRequest, QuoteChain
"""

from portfolio_core.services.pricing.chains import QuoteChain
from portfolio_core.services.pricing.resolver import (
    PriceResolver,
    build_estimation_prompt,
    parse_estimate,
)
from portfolio_core.services.pricing.types import (
    EstimationContext,
    PriceRequest,
    PriceResult,
)

__all__ = [
    "PriceResolver",
    "QuoteChain",
    "PriceRequest",
    "PriceResult",
    "EstimationContext",
    "build_estimation_prompt",
    "parse_estimate",
]
