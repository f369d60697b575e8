# backend/portfolio_core/services/analytics/insights.py
"""
Human-readable risk alerts and diversification insights from the
class allocation.
"""

from collections.abc import Sequence
from decimal import Decimal

from portfolio_core.models import AssetClass
from portfolio_core.services.analytics.types import (
    DiversificationInsight,
    RiskAlert,
    Sentiment,
    Severity,
)
from portfolio_core.services.constants import CONCENTRATION_HIGH_PCT, CONCENTRATION_MEDIUM_PCT
from portfolio_core.services.valuation.types import ClassRollup

# Largest-class alerts for these suggest defensive assets instead of generic spreading
VOLATILE_CLASSES = frozenset({AssetClass.EQUITY, AssetClass.CRYPTO})

GOOD_CATEGORY_COUNT = 5
MODERATE_CATEGORY_COUNT = 3
GOOD_ASSET_COUNT = 5
MODERATE_ASSET_COUNT = 2


def class_label(asset_class: AssetClass) -> str:
    return asset_class.value.replace("_", " ")


def _by_value(rollups: Sequence[ClassRollup]) -> list[ClassRollup]:
    # Stable: equal values keep roll-up order
    return sorted(rollups, key=lambda r: r.value, reverse=True)


def _share(value: Decimal, total_value: Decimal) -> float:
    return float(value / total_value * 100) if total_value > 0 else 0.0


def build_risk_alerts(rollups: Sequence[ClassRollup], total_value: Decimal) -> list[RiskAlert]:
    """Concentration alert for the largest class, plus a single-class alert."""
    alerts: list[RiskAlert] = []
    if not rollups or total_value <= 0:
        return alerts

    top = _by_value(rollups)[0]
    top_pct = _share(top.value, total_value)
    label = class_label(top.asset_class)

    if top_pct >= CONCENTRATION_HIGH_PCT:
        if top.asset_class in VOLATILE_CLASSES:
            recommendation = "Consider adding bonds, gold, or cash to balance risk."
        else:
            recommendation = "Consider diversifying across other asset classes."
        alerts.append(RiskAlert(
            title=f"High {label} concentration",
            description=f"{top_pct:.0f}% of your portfolio is in {label}. This reduces diversification benefits.",
            severity=Severity.HIGH,
            recommendation=recommendation,
        ))
    elif top_pct >= CONCENTRATION_MEDIUM_PCT:
        alerts.append(RiskAlert(
            title=f"Moderate {label} concentration",
            description=f"{top_pct:.0f}% of your portfolio is in {label}.",
            severity=Severity.MEDIUM,
            recommendation="Monitor allocation and consider rebalancing over time.",
        ))

    if len(rollups) == 1:
        alerts.append(RiskAlert(
            title="Single asset class",
            description="Your portfolio holds only one asset type.",
            severity=Severity.MEDIUM,
            recommendation="Consider diversifying across stocks, bonds, crypto, or real estate.",
        ))

    return alerts


def build_diversification_insights(
        rollups: Sequence[ClassRollup],
        total_value: Decimal,
        asset_count: int,
) -> list[DiversificationInsight]:
    """Category diversity, portfolio size and primary allocation."""
    insights: list[DiversificationInsight] = []
    if not rollups:
        return insights

    category_count = len(rollups)
    if category_count >= GOOD_CATEGORY_COUNT:
        description, sentiment = "Good category diversity across your portfolio.", Sentiment.POSITIVE
    elif category_count >= MODERATE_CATEGORY_COUNT:
        description, sentiment = "Moderate diversity. Consider adding more asset types.", Sentiment.INFO
    else:
        description, sentiment = "Limited diversity. Diversification can help manage risk.", Sentiment.WARNING
    insights.append(DiversificationInsight(
        title="Category diversity",
        value=f"{category_count} categories",
        description=description,
        sentiment=sentiment,
    ))

    if asset_count >= GOOD_ASSET_COUNT:
        insights.append(DiversificationInsight(
            title="Portfolio size",
            value=f"{asset_count} assets",
            description="Well-sized portfolio with good diversification potential.",
            sentiment=Sentiment.POSITIVE,
        ))
    elif asset_count >= MODERATE_ASSET_COUNT:
        insights.append(DiversificationInsight(
            title="Portfolio size",
            value=f"{asset_count} assets",
            description="Consider adding more positions to spread risk.",
            sentiment=Sentiment.INFO,
        ))

    ranked = _by_value(rollups)
    top_pct = _share(ranked[0].value, total_value)
    primary = ", ".join(
        f"{class_label(r.asset_class)} ({_share(r.value, total_value):.0f}%)"
        for r in ranked[:3]
    )
    insights.append(DiversificationInsight(
        title="Asset allocation",
        value=f"{top_pct:.0f}% {class_label(ranked[0].asset_class)}",
        description=f"Primary allocation: {primary}.",
        sentiment=Sentiment.WARNING if top_pct >= CONCENTRATION_HIGH_PCT else Sentiment.INFO,
    ))

    return insights
