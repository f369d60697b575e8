# backend/portfolio_core/services/analytics/__init__.py
"""
Risk/return analytics.

Architecture:
    analytics/
    ├── __init__.py     # Package exports
    ├── types.py        # Result types and enums
    ├── risk.py         # Log-returns, volatility, Sharpe, concentration, risk level
    └── insights.py     # Risk alerts and diversification insights

Usage:
    from portfolio_core.services.analytics import analyze_series, concentration

    risk = analyze_series(history.values, risk_free_rate=0.025)
    top_pct = concentration(valuation.by_class, valuation.total_value)
"""

from portfolio_core.services.analytics.insights import (
    build_diversification_insights,
    build_risk_alerts,
)
from portfolio_core.services.analytics.risk import (
    analyze_series,
    annualized_volatility,
    concentration,
    daily_log_returns,
    estimated_risk_level,
    risk_score,
    sharpe_ratio,
)
from portfolio_core.services.analytics.types import (
    DiversificationInsight,
    RiskAlert,
    RiskLevel,
    SeriesRisk,
    Sentiment,
    Severity,
)

__all__ = [
    "analyze_series",
    "annualized_volatility",
    "concentration",
    "daily_log_returns",
    "estimated_risk_level",
    "risk_score",
    "sharpe_ratio",
    "build_diversification_insights",
    "build_risk_alerts",
    "DiversificationInsight",
    "RiskAlert",
    "RiskLevel",
    "SeriesRisk",
    "Sentiment",
    "Severity",
]
