# backend/portfolio_core/services/history/types.py
"""
Data types of the history reconstructor.

History values are floats: the series is a chart and an analytics input,
never a ledger amount, and it is rounded to cents on output.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from portfolio_core.models import AssetClass


@dataclass(frozen=True)
class HistoryAsset:
    """
    One holding to reconstruct.

    Attributes:
        identifier: Trading symbol (exchange-traded) or coin id / symbol / metal
        quantity: Held quantity; negative values count as 0
        currency: Currency of `constant_value`
        constant_value: Current value repeated for every day of the window.
            Used for classes without daily prices (real estate, fiat,
            private equity), but any holding carrying one is treated so.
    """

    identifier: str
    asset_class: AssetClass
    quantity: Decimal
    currency: str = "EUR"
    constant_value: Decimal | None = None


@dataclass(frozen=True)
class HistoryPoint:
    date: date
    value: float


@dataclass(frozen=True)
class PortfolioHistory:
    """
    Daily portfolio value, ascending and gapless from the first valued day.

    Attributes:
        skipped: True when the portfolio exceeded the asset limit
        assets_included: Holdings that contributed a series
    """

    series: tuple[HistoryPoint, ...]
    currency: str
    skipped: bool = False
    assets_included: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def values(self) -> list[float]:
        return [point.value for point in self.series]

    @property
    def is_empty(self) -> bool:
        return not self.series
