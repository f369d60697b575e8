# backend/portfolio_core/services/valuation/__init__.py
"""
Portfolio valuation: per-holding cost, value and ROI with class roll-ups.

Usage:
    from portfolio_core.services.valuation import ValuationAggregator, PortfolioValuation
"""

from portfolio_core.services.valuation.aggregator import ValuationAggregator
from portfolio_core.services.valuation.calculators import (
    CostCalculator,
    InterestAccrualCalculator,
    roi_percent,
)
from portfolio_core.services.valuation.types import (
    AssetValuation,
    ClassRollup,
    PortfolioValuation,
    SOURCE_COST_BASIS,
    SOURCE_INTEREST_ACCRUAL,
)

__all__ = [
    "ValuationAggregator",
    "CostCalculator",
    "InterestAccrualCalculator",
    "roi_percent",
    "AssetValuation",
    "ClassRollup",
    "PortfolioValuation",
    "SOURCE_COST_BASIS",
    "SOURCE_INTEREST_ACCRUAL",
]
