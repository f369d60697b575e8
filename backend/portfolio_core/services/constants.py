# backend/portfolio_core/services/constants.py
"""
Centralized constants for the pricing and valuation services.

Single source of truth for freshness policies, fallback FX rates,
analytics thresholds and risk weights.

Usage:
    from portfolio_core.services.constants import (
        TRADING_DAYS_PER_YEAR,
        cache_ttl_for,
    )
"""

from datetime import timedelta
from decimal import Decimal

from portfolio_core.models import AssetClass


# =============================================================================
# PRICE CACHE FRESHNESS
# =============================================================================

EXCHANGE_QUOTE_TTL: timedelta = timedelta(minutes=5)
COIN_QUOTE_TTL: timedelta = timedelta(minutes=1)
REAL_ESTATE_TTL: timedelta = timedelta(hours=24)

CACHE_TTL_BY_CLASS: dict[AssetClass, timedelta] = {
    AssetClass.EQUITY: EXCHANGE_QUOTE_TTL,
    AssetClass.ETF: EXCHANGE_QUOTE_TTL,
    AssetClass.FUND: EXCHANGE_QUOTE_TTL,
    AssetClass.COMMODITY: EXCHANGE_QUOTE_TTL,
    AssetClass.CRYPTO: COIN_QUOTE_TTL,
    AssetClass.PRECIOUS_METAL: COIN_QUOTE_TTL,
    AssetClass.REAL_ESTATE: REAL_ESTATE_TTL,
}

# Real estate rows older than this are deleted after every fresh real estate write
REAL_ESTATE_RETENTION: timedelta = timedelta(days=7)

# Source tag for a held-over purchase price. Never cached, never trusted twice.
LOW_CONFIDENCE_SOURCE: str = "purchase_price"


def cache_ttl_for(asset_class: AssetClass) -> timedelta:
    """Maximum age of a cached quotation for the given class."""
    return CACHE_TTL_BY_CLASS.get(asset_class, EXCHANGE_QUOTE_TTL)


# =============================================================================
# FX FALLBACKS
# =============================================================================

# Hardcoded EUR value of one unit of each currency, used when the
# rate provider is unavailable. 1 USD = 0.92 EUR, and so on.
FALLBACK_EUR_RATES: dict[str, Decimal] = {
    "EUR": Decimal("1"),
    "USD": Decimal("0.92"),
    "GBP": Decimal("1.17"),
    "CHF": Decimal("1.05"),
    "CAD": Decimal("0.68"),
}


# =============================================================================
# FINANCIAL CALENDAR
# =============================================================================

# Used for annualizing volatility and Sharpe ratio
TRADING_DAYS_PER_YEAR: int = 252

# Used for the simple interest accrual of fiat deposits
DAYS_PER_YEAR_ACCRUAL: Decimal = Decimal("365.25")


# =============================================================================
# ANALYTICS
# =============================================================================

DEFAULT_RISK_FREE_RATE: float = 0.025

# Below this many positive series points volatility and Sharpe are NaN
MIN_OBSERVATIONS_FOR_RISK: int = 21

# Allocation-based risk estimate (no historical data needed)
RISK_WEIGHTS: dict[AssetClass, float] = {
    AssetClass.CRYPTO: 1.5,
    AssetClass.EQUITY: 1.0,
    AssetClass.ETF: 0.9,
    AssetClass.FUND: 0.85,
    AssetClass.COMMODITY: 0.8,
    AssetClass.MINERAL: 0.75,
    AssetClass.PRIVATE_EQUITY: 0.7,
    AssetClass.REAL_ESTATE: 0.6,
    AssetClass.PRECIOUS_METAL: 0.5,
    AssetClass.OTHER: 0.5,
    AssetClass.FIAT: 0.1,
}
DEFAULT_RISK_WEIGHT: float = 0.5

RISK_LEVEL_HIGH_THRESHOLD: float = 0.85
RISK_LEVEL_MEDIUM_THRESHOLD: float = 0.5

# Share of the largest class (percent) that triggers a concentration alert
CONCENTRATION_HIGH_PCT: float = 70.0
CONCENTRATION_MEDIUM_PCT: float = 50.0


# =============================================================================
# HISTORY RECONSTRUCTION
# =============================================================================

HISTORY_LOOKBACK_DAYS: int = 365
HISTORY_MAX_ASSETS: int = 15


# =============================================================================
# API RATE LIMITS (slowapi format)
# =============================================================================

RATE_LIMIT_DEFAULT: str = "120/minute"
RATE_LIMIT_PRICES: str = "30/minute"
RATE_LIMIT_HISTORY: str = "10/minute"
RATE_LIMIT_HEALTH: str = "60/minute"
