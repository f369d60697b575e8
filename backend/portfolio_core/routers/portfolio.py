# backend/portfolio_core/routers/portfolio.py
"""
Portfolio valuation, history and analysis endpoints.

- POST /portfolio/valuation - Cost, value and ROI per asset and per class
- POST /portfolio/history - Daily value series over the trailing year
- POST /portfolio/analysis - Valuation plus concentration, risk and insights

The asset snapshot travels in the request body; nothing is stored.
"""

import math

from fastapi import APIRouter, Depends, Request

from portfolio_core.dependencies import get_portfolio_service
from portfolio_core.middleware.rate_limit import limiter, RATE_LIMIT_HISTORY, RATE_LIMIT_PRICES
from portfolio_core.schemas.portfolio import (
    AnalysisRequest,
    AssetValuationResponse,
    ClassRollupResponse,
    DiversificationInsightResponse,
    HistoryPointResponse,
    HistoryRequest,
    PortfolioAnalysisResponse,
    PortfolioHistoryResponse,
    PortfolioValuationResponse,
    RiskAlertResponse,
    SeriesRiskResponse,
    ValuationRequest,
)
from portfolio_core.services.analytics import SeriesRisk
from portfolio_core.services.history import HistoryAsset, PortfolioHistory
from portfolio_core.services.portfolio_service import PortfolioService
from portfolio_core.services.valuation import PortfolioValuation

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/portfolio",
    tags=["Portfolio"],
)


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_valuation(valuation: PortfolioValuation) -> PortfolioValuationResponse:
    top = valuation.top_performer
    return PortfolioValuationResponse(
        base_currency=valuation.base_currency,
        as_of=valuation.as_of,
        total_value=valuation.total_value,
        total_cost=valuation.total_cost,
        total_roi=valuation.total_roi,
        assets=[
            AssetValuationResponse(
                asset_id=a.asset_id,
                name=a.name,
                asset_class=a.asset_class,
                quantity=a.quantity,
                cost=a.cost,
                current_price=a.current_price,
                current_value=a.current_value,
                roi=a.roi,
                price_source=a.price_source,
            )
            for a in valuation.assets
        ],
        by_class=[
            ClassRollupResponse(
                asset_class=r.asset_class,
                value=r.value,
                cost=r.cost,
                asset_count=r.asset_count,
            )
            for r in valuation.by_class
        ],
        top_performer=top.asset_id if top is not None else None,
        warnings=list(valuation.warnings),
    )


def _map_history(history: PortfolioHistory) -> PortfolioHistoryResponse:
    return PortfolioHistoryResponse(
        currency=history.currency,
        series=[HistoryPointResponse(date=p.date, value=p.value) for p in history.series],
        skipped=history.skipped,
        assets_included=history.assets_included,
        warnings=list(history.warnings),
    )


def _nan_to_none(value: float) -> float | None:
    return None if math.isnan(value) else value


def _map_series_risk(risk: SeriesRisk | None) -> SeriesRiskResponse | None:
    if risk is None:
        return None
    return SeriesRiskResponse(
        volatility=_nan_to_none(risk.volatility),
        sharpe_ratio=_nan_to_none(risk.sharpe_ratio),
        observations=risk.observations,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/valuation",
    response_model=PortfolioValuationResponse,
    summary="Value a portfolio snapshot",
)
@limiter.limit(RATE_LIMIT_PRICES)
def get_portfolio_valuation(
        request: Request,  # Required for rate limiting
        body: ValuationRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioValuationResponse:
    """
    Value every asset in the base currency.

    - **cost**: purchase price x quantity
    - **current_value**: market price x quantity; interest accrual for fiat;
      cost basis when no price could be resolved (listed in `warnings`)
    - **by_class**: value and cost per asset class, in first-seen order
    """
    valuation = service.get_valuation(
        body.assets,
        base_currency=body.base_currency,
        force_refresh=body.force_refresh,
    )
    return _map_valuation(valuation)


@router.post(
    "/history",
    response_model=PortfolioHistoryResponse,
    summary="Reconstruct the daily portfolio value",
)
@limiter.limit(RATE_LIMIT_HISTORY)
def get_portfolio_history(
        request: Request,  # Required for rate limiting
        body: HistoryRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioHistoryResponse:
    """
    Daily value series over the trailing lookback window.

    Raises **400** when more assets are sent than history supports (15 by default).
    """
    history = service.get_history(
        [
            HistoryAsset(
                identifier=a.identifier,
                asset_class=a.asset_class,
                quantity=a.quantity,
                currency=a.currency,
                constant_value=a.constant_value,
            )
            for a in body.assets
        ],
        end_date=body.end_date,
        base_currency=body.base_currency,
    )
    return _map_history(history)


@router.post(
    "/analysis",
    response_model=PortfolioAnalysisResponse,
    summary="Analyze allocation and risk",
)
@limiter.limit(RATE_LIMIT_HISTORY)
def get_portfolio_analysis(
        request: Request,  # Required for rate limiting
        body: AnalysisRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioAnalysisResponse:
    """
    Valuation plus allocation analytics.

    With `include_history`, volatility and Sharpe ratio are computed from the
    reconstructed series; they are null below 21 observations or when the
    portfolio is too large for history.
    """
    analysis = service.analyze(
        body.assets,
        base_currency=body.base_currency,
        include_history=body.include_history,
    )

    return PortfolioAnalysisResponse(
        valuation=_map_valuation(analysis.valuation),
        concentration_pct=analysis.concentration_pct,
        risk_level=analysis.risk_level.value,
        alerts=[
            RiskAlertResponse(
                title=a.title,
                description=a.description,
                severity=a.severity.value,
                recommendation=a.recommendation,
            )
            for a in analysis.alerts
        ],
        insights=[
            DiversificationInsightResponse(
                title=i.title,
                value=i.value,
                description=i.description,
                sentiment=i.sentiment.value,
            )
            for i in analysis.insights
        ],
        series_risk=_map_series_risk(analysis.series_risk),
        history_skipped=analysis.history.skipped if analysis.history is not None else None,
        warnings=analysis.warnings,
    )
