# backend/portfolio_core/services/valuation/types.py
"""
Internal data types of the valuation aggregator.

These dataclasses are NOT Pydantic schemas; the API models live in
portfolio_core/schemas/portfolio.py.

Design Principles:
- Immutable value objects (frozen=True)
- Decimal for every monetary amount, all in the base currency
- Warnings accumulate instead of failing the valuation

Type Hierarchy:
    AssetValuation      - cost / value / ROI of one holding
    ClassRollup         - value and cost summed per asset class
    PortfolioValuation  - everything above plus grand totals
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from portfolio_core.models import AssetClass

# price_source values that are not provider tags
SOURCE_INTEREST_ACCRUAL = "interest_accrual"
SOURCE_COST_BASIS = "cost_basis"


@dataclass(frozen=True)
class AssetValuation:
    """
    Valuation of one holding in the base currency.

    Attributes:
        current_price: Unit price used; growth factor for fiat; None when unpriced
        price_source: Provider tag, "interest_accrual" or "cost_basis"
    """

    asset_id: str
    name: str
    asset_class: AssetClass
    quantity: Decimal
    cost: Decimal
    current_price: Decimal | None
    current_value: Decimal
    roi: Decimal
    price_source: str

    @property
    def is_priced(self) -> bool:
        return self.price_source != SOURCE_COST_BASIS

    @property
    def gain(self) -> Decimal:
        return self.current_value - self.cost


@dataclass(frozen=True)
class ClassRollup:
    asset_class: AssetClass
    value: Decimal
    cost: Decimal
    asset_count: int


@dataclass(frozen=True)
class PortfolioValuation:
    """
    Complete portfolio valuation.

    Invariants:
        sum(r.value for r in by_class) == total_value
        sum(r.cost for r in by_class) == total_cost
    """

    base_currency: str
    as_of: datetime
    assets: tuple[AssetValuation, ...]
    by_class: tuple[ClassRollup, ...]
    total_value: Decimal
    total_cost: Decimal
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_roi(self) -> Decimal:
        if self.total_cost > 0:
            return (self.total_value - self.total_cost) / self.total_cost * 100
        return Decimal("0")

    @property
    def top_performer(self) -> AssetValuation | None:
        """Highest-ROI holding among those with a cost basis; first one wins ties."""
        best: AssetValuation | None = None
        for valuation in self.assets:
            if valuation.cost > 0 and (best is None or valuation.roi > best.roi):
                best = valuation
        return best

    @property
    def unpriced_count(self) -> int:
        return sum(1 for a in self.assets if not a.is_priced)
