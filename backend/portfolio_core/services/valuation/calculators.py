# backend/portfolio_core/services/valuation/calculators.py
"""
Per-holding valuation calculators.

- CostCalculator: purchase cost in the base currency
- InterestAccrualCalculator: simple-interest growth of fiat deposits
- roi_percent: ROI that is 0, never NaN or infinite, without a cost basis

All calculators are stateless and take every input explicitly, including
the valuation instant, so a valuation is a pure function of its inputs.
"""

from datetime import datetime
from decimal import Decimal

from portfolio_core.schemas.assets import Asset, FiatAttributes
from portfolio_core.services.constants import DAYS_PER_YEAR_ACCRUAL

SECONDS_PER_ACCRUAL_YEAR = DAYS_PER_YEAR_ACCRUAL * 24 * 60 * 60

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def roi_percent(value: Decimal, cost: Decimal) -> Decimal:
    if cost > 0:
        return (value - cost) / cost * HUNDRED
    return ZERO


class CostCalculator:
    """cost = purchase_price x quantity, converted at `rate` into the base currency."""

    def calculate(self, asset: Asset, rate: Decimal) -> Decimal:
        return asset.cost_local * rate


class InterestAccrualCalculator:
    """
    Value of an interest-bearing cash holding.

        value = quantity x (1 + rate / 100 x years_held)

    years_held is elapsed wall time over 365.25-day years, floored at 0 so a
    future-dated deposit never shrinks. A missing or zero rate means no growth.
    """

    def years_held(self, purchase_date: datetime | None, as_of: datetime) -> Decimal:
        if purchase_date is None:
            return ZERO
        elapsed = Decimal(str((as_of - purchase_date).total_seconds()))
        return max(ZERO, elapsed / SECONDS_PER_ACCRUAL_YEAR)

    def growth_factor(self, asset: Asset, as_of: datetime) -> Decimal:
        attrs = asset.attributes
        rate = attrs.interest_rate if isinstance(attrs, FiatAttributes) else None
        if not rate or rate <= 0:
            return ONE
        return ONE + rate / HUNDRED * self.years_held(asset.purchase_date, as_of)

    def calculate(self, asset: Asset, as_of: datetime, rate: Decimal) -> tuple[Decimal, Decimal]:
        """Returns (growth factor, current value in the base currency)."""
        factor = self.growth_factor(asset, as_of)
        return factor, asset.quantity * factor * rate
