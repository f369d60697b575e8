# backend/portfolio_core/services/analytics/types.py
"""
Data types for the risk/return analytics.

Series statistics are floats with NaN as the "not available" sentinel;
allocation figures are percentages of the portfolio total.
"""

import math
from dataclasses import dataclass
from enum import Enum


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class SeriesRisk:
    """
    Volatility and Sharpe ratio of a value series.

    Attributes:
        volatility: Annualized, as a fraction (0.18 = 18%); NaN when unavailable
        sharpe_ratio: NaN when unavailable or volatility is not positive
        observations: Positive values the statistics were computed from
    """

    volatility: float
    sharpe_ratio: float
    observations: int

    @property
    def is_available(self) -> bool:
        return not math.isnan(self.volatility)


@dataclass(frozen=True)
class RiskAlert:
    title: str
    description: str
    severity: Severity
    recommendation: str | None = None


@dataclass(frozen=True)
class DiversificationInsight:
    title: str
    value: str
    description: str
    sentiment: Sentiment
