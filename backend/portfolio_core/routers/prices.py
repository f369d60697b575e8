# backend/portfolio_core/routers/prices.py
"""
Price resolution endpoint.

- POST /prices - Resolve current prices for a batch of identifiers

Assets that cannot be priced are simply absent from the response map;
provider failures never turn into an error response.
"""

import logging
from collections.abc import Mapping

from fastapi import APIRouter, Depends, Request

from portfolio_core.dependencies import get_portfolio_service
from portfolio_core.middleware.rate_limit import limiter, RATE_LIMIT_PRICES
from portfolio_core.models import AssetClass
from portfolio_core.schemas.prices import PriceQuoteResponse, PriceRequestItem, PricesRequest
from portfolio_core.services.portfolio_service import PortfolioService
from portfolio_core.services.price_cache import QuoteKey
from portfolio_core.services.pricing import EstimationContext, PriceRequest, PriceResult

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/prices",
    tags=["Prices"],
)


# =============================================================================
# MAPPER FUNCTIONS (Pydantic Schemas -> Internal Types)
# =============================================================================

def _to_price_request(item: PriceRequestItem) -> PriceRequest:
    estimation = None
    if item.asset_class == AssetClass.REAL_ESTATE and item.purchase_price is not None:
        estimation = EstimationContext(
            purchase_price=item.purchase_price,
            currency=item.purchase_currency or item.currency,
            description=item.property_details or {},
        )

    return PriceRequest(
        identifier=item.identifier,
        asset_class=item.asset_class,
        currency=item.currency,
        force_refresh=item.force_refresh,
        estimation=estimation,
    )


def _to_response(prices: Mapping[QuoteKey, PriceResult]) -> dict[str, PriceQuoteResponse]:
    """
    Key results by `identifier-currency`.

    The label carries no asset class, so two classes sharing an identifier
    (commodity and precious metal "gold") collide; the first result is kept.
    """
    response: dict[str, PriceQuoteResponse] = {}
    classes: dict[str, AssetClass] = {}
    for key, result in prices.items():
        label = key.label
        if label in response:
            logger.warning(
                f"Price key collision for {label}: keeping {classes[label].value}, "
                f"dropping {key.asset_class.value}"
            )
            continue
        response[label] = PriceQuoteResponse(price=result.price, source=result.source)
        classes[label] = key.asset_class
    return response


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "",
    response_model=dict[str, PriceQuoteResponse],
    summary="Resolve current prices",
    response_description='Map of "<identifier>-<currency>" to price and source',
)
@limiter.limit(RATE_LIMIT_PRICES)
def resolve_prices(
        request: Request,  # Required for rate limiting
        body: PricesRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> dict[str, PriceQuoteResponse]:
    """
    Resolve prices cache-first, falling back through each class's providers.

    - Equities, ETFs, funds, commodities: Tiingo, Finnhub, Yahoo Finance
    - Crypto and precious metals: one CoinGecko call per currency
    - Real estate: AI estimate, else the purchase price (source `purchase_price`)

    Identifiers that cannot be priced are left out of the response. Keys do
    not include the asset class: when two classes share an identifier and
    currency, only the first resolved one is returned.
    """
    prices = service.resolve_prices([_to_price_request(item) for item in body.requests])

    return _to_response(prices)
