# backend/portfolio_core/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- assets: Asset snapshot with class-specific attributes
- errors: Error response formats
- prices: Price resolution requests and quotes
- portfolio: Valuation, history and analysis

Usage:
    from portfolio_core.schemas import Asset, ValuationRequest, PortfolioValuationResponse
"""

from portfolio_core.schemas.assets import (
    Asset,
    AssetAttributes,
    CommodityAttributes,
    CryptoAttributes,
    FiatAttributes,
    GenericAttributes,
    PreciousMetalAttributes,
    RealEstateAttributes,
    SecurityAttributes,
)
from portfolio_core.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_core.schemas.portfolio import (
    AnalysisRequest,
    AssetValuationResponse,
    ClassRollupResponse,
    DiversificationInsightResponse,
    HistoryAssetRequest,
    HistoryPointResponse,
    HistoryRequest,
    PortfolioAnalysisResponse,
    PortfolioHistoryResponse,
    PortfolioValuationResponse,
    RiskAlertResponse,
    SeriesRiskResponse,
    ValuationRequest,
)
from portfolio_core.schemas.prices import PriceQuoteResponse, PriceRequestItem, PricesRequest

__all__ = [
    # Assets
    "Asset",
    "AssetAttributes",
    "CommodityAttributes",
    "CryptoAttributes",
    "FiatAttributes",
    "GenericAttributes",
    "PreciousMetalAttributes",
    "RealEstateAttributes",
    "SecurityAttributes",
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Prices
    "PriceQuoteResponse",
    "PriceRequestItem",
    "PricesRequest",
    # Portfolio
    "AnalysisRequest",
    "AssetValuationResponse",
    "ClassRollupResponse",
    "DiversificationInsightResponse",
    "HistoryAssetRequest",
    "HistoryPointResponse",
    "HistoryRequest",
    "PortfolioAnalysisResponse",
    "PortfolioHistoryResponse",
    "PortfolioValuationResponse",
    "RiskAlertResponse",
    "SeriesRiskResponse",
    "ValuationRequest",
]
