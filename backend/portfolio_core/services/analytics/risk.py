# backend/portfolio_core/services/analytics/risk.py
"""
Risk functions over a portfolio value series and its class allocation.

Pure functions only. No external dependencies (scipy, numpy): the sample
standard deviation comes from the `statistics` stdlib.

Formulas:
    r[0] = 0
    r[t] = ln(v[t] / v[t-1])            (0 when either value is not positive)

    Volatility (annualized) = stdev(r) * √252        (sample stdev)

    Sharpe Ratio = (mean(r) * 252 - R_f) / Volatility

    Concentration = value of the largest class / total * 100

    Risk score = Σ class_share * RISK_WEIGHTS[class]
        >= 0.85 high, >= 0.5 medium, else low

Volatility and Sharpe need MIN_OBSERVATIONS_FOR_RISK observations; below
that both are NaN instead of a noisy estimate.
"""

import logging
import math
import statistics
from collections.abc import Sequence
from decimal import Decimal

from portfolio_core.services.analytics.types import RiskLevel, SeriesRisk
from portfolio_core.services.constants import (
    DEFAULT_RISK_FREE_RATE,
    DEFAULT_RISK_WEIGHT,
    MIN_OBSERVATIONS_FOR_RISK,
    RISK_LEVEL_HIGH_THRESHOLD,
    RISK_LEVEL_MEDIUM_THRESHOLD,
    RISK_WEIGHTS,
    TRADING_DAYS_PER_YEAR,
)
from portfolio_core.services.exceptions import InsufficientHistoryError
from portfolio_core.services.valuation.types import ClassRollup

logger = logging.getLogger(__name__)

NAN = float("nan")


# =============================================================================
# SERIES STATISTICS
# =============================================================================

def daily_log_returns(values: Sequence[float]) -> list[float]:
    """
    Daily log-returns, same length as `values`, first element 0.

    Example:
        daily_log_returns([100, 110, 0, 120])  # [0, 0.0953..., 0, 0]
    """
    if not values:
        return []

    returns = [0.0]
    for prev, curr in zip(values, values[1:]):
        if prev > 0 and curr > 0:
            returns.append(math.log(curr / prev))
        else:
            returns.append(0.0)
    return returns


def _require_observations(count: int) -> None:
    if count < MIN_OBSERVATIONS_FOR_RISK:
        raise InsufficientHistoryError(count, MIN_OBSERVATIONS_FOR_RISK)


def annualized_volatility(returns: Sequence[float]) -> float:
    """Sample standard deviation of daily log-returns times √252, or NaN."""
    try:
        _require_observations(len(returns))
    except InsufficientHistoryError:
        return NAN
    return statistics.stdev(returns) * math.sqrt(TRADING_DAYS_PER_YEAR)


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> float:
    """
    Annualized excess log-return per unit of volatility, or NaN.

    Args:
        returns: Daily log-returns
        risk_free_rate: Annual rate as a fraction (0.025 = 2.5%)
    """
    volatility = annualized_volatility(returns)
    if math.isnan(volatility) or volatility <= 0:
        return NAN

    annual_return = statistics.fmean(returns) * TRADING_DAYS_PER_YEAR
    return (annual_return - risk_free_rate) / volatility


def analyze_series(values: Sequence[float], risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> SeriesRisk:
    """
    Volatility and Sharpe ratio of a value series.

    Non-positive values are dropped first; fewer than the minimum number of
    remaining observations gives the NaN pair.
    """
    positive = [float(v) for v in values if v is not None and v > 0]

    try:
        _require_observations(len(positive))
    except InsufficientHistoryError as e:
        logger.debug(f"Series risk not available: {e.message}")
        return SeriesRisk(volatility=NAN, sharpe_ratio=NAN, observations=len(positive))

    returns = daily_log_returns(positive)
    return SeriesRisk(
        volatility=annualized_volatility(returns),
        sharpe_ratio=sharpe_ratio(returns, risk_free_rate),
        observations=len(positive),
    )


# =============================================================================
# ALLOCATION
# =============================================================================

def concentration(rollups: Sequence[ClassRollup], total_value: Decimal) -> float:
    """Percentage of `total_value` held in the single largest asset class."""
    if not rollups or total_value <= 0:
        return 0.0
    largest = max(rollup.value for rollup in rollups)
    return float(largest / total_value * 100)


def risk_score(rollups: Sequence[ClassRollup], total_value: Decimal) -> float:
    """Value-weighted average of the per-class risk weights."""
    if not rollups or total_value <= 0:
        return 0.0

    score = 0.0
    for rollup in rollups:
        share = float(rollup.value / total_value)
        score += share * RISK_WEIGHTS.get(rollup.asset_class, DEFAULT_RISK_WEIGHT)
    return score


def estimated_risk_level(rollups: Sequence[ClassRollup], total_value: Decimal) -> RiskLevel:
    score = risk_score(rollups, total_value)
    if score >= RISK_LEVEL_HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= RISK_LEVEL_MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
