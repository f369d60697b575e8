# backend/portfolio_core/schemas/portfolio.py
"""
Pydantic schemas for portfolio valuation, history and analysis.

Requests carry the asset snapshot inline; this service never stores it.
Float statistics that are not available (NaN) are serialized as null.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from portfolio_core.models import AssetClass
from portfolio_core.schemas.assets import Asset

MAX_PORTFOLIO_ASSETS = 500


# =============================================================================
# VALUATION
# =============================================================================

class ValuationRequest(BaseModel):
    assets: list[Asset] = Field(default_factory=list, max_length=MAX_PORTFOLIO_ASSETS)
    base_currency: str | None = Field(default=None, min_length=3, max_length=3)
    force_refresh: bool = False

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class AssetValuationResponse(BaseModel):
    asset_id: str
    name: str
    asset_class: AssetClass
    quantity: Decimal
    cost: Decimal = Field(..., description="Purchase cost in the base currency")
    current_price: Decimal | None = Field(
        ...,
        description="Unit price in the base currency; growth factor for fiat; null when unpriced"
    )
    current_value: Decimal
    roi: Decimal = Field(..., description="Percent; 0 without a cost basis")
    price_source: str = Field(..., examples=["tiingo", "interest_accrual", "cost_basis"])


class ClassRollupResponse(BaseModel):
    asset_class: AssetClass
    value: Decimal
    cost: Decimal
    asset_count: int


class PortfolioValuationResponse(BaseModel):
    base_currency: str
    as_of: dt.datetime
    total_value: Decimal
    total_cost: Decimal
    total_roi: Decimal
    assets: list[AssetValuationResponse]
    by_class: list[ClassRollupResponse] = Field(..., description="Ordered by first appearance")
    top_performer: str | None = Field(default=None, description="asset_id with the highest ROI")
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# HISTORY
# =============================================================================

class HistoryAssetRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=255)
    asset_class: AssetClass
    quantity: Decimal = Field(default=Decimal("0"))
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    constant_value: Decimal | None = Field(
        default=None,
        ge=0,
        description="Value repeated for every day (real estate, fiat, private equity)"
    )

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class HistoryRequest(BaseModel):
    # The upper bound is enforced by the service (400, not 422)
    assets: list[HistoryAssetRequest] = Field(..., min_length=1)
    base_currency: str | None = Field(default=None, min_length=3, max_length=3)
    end_date: dt.date | None = None

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class HistoryPointResponse(BaseModel):
    date: dt.date
    value: float


class PortfolioHistoryResponse(BaseModel):
    currency: str
    series: list[HistoryPointResponse]
    skipped: bool = False
    assets_included: int = 0
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# ANALYSIS
# =============================================================================

class AnalysisRequest(ValuationRequest):
    include_history: bool = True


class RiskAlertResponse(BaseModel):
    title: str
    description: str
    severity: str
    recommendation: str | None = None


class DiversificationInsightResponse(BaseModel):
    title: str
    value: str
    description: str
    sentiment: str


class SeriesRiskResponse(BaseModel):
    volatility: float | None = Field(..., description="Annualized fraction; null below 21 observations")
    sharpe_ratio: float | None
    observations: int


class PortfolioAnalysisResponse(BaseModel):
    valuation: PortfolioValuationResponse
    concentration_pct: float
    risk_level: str = Field(..., examples=["low", "medium", "high"])
    alerts: list[RiskAlertResponse]
    insights: list[DiversificationInsightResponse]
    series_risk: SeriesRiskResponse | None = None
    history_skipped: bool | None = None
    warnings: list[str] = Field(default_factory=list)
