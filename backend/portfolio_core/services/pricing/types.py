# backend/portfolio_core/services/pricing/types.py
"""
Request and result types of the price resolver.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from portfolio_core.models import AssetClass
from portfolio_core.services.constants import LOW_CONFIDENCE_SOURCE
from portfolio_core.services.price_cache import QuoteKey


@dataclass(frozen=True)
class EstimationContext:
    """
    What the completion provider is told about a property.

    Attributes:
        purchase_price: Unit price paid (the property price when quantity is 1)
        currency: Currency of the purchase price
        description: Property attributes (size, type, location, ...)
    """

    purchase_price: Decimal
    currency: str = "EUR"
    description: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceRequest:
    """
    One asset to price.

    Attributes:
        identifier: Symbol, ISIN, coin id, metal name or "re-<asset id>"
        asset_class: Selects the provider chain and cache TTL
        currency: Currency the resolved price must be expressed in
        force_refresh: Skip the cache lookup (the result is still cached)
        estimation: Real estate only; input for the value estimate
    """

    identifier: str
    asset_class: AssetClass
    currency: str = "EUR"
    force_refresh: bool = False
    estimation: EstimationContext | None = None

    @property
    def key(self) -> QuoteKey:
        return QuoteKey.build(self.identifier, self.asset_class, self.currency)


@dataclass(frozen=True)
class PriceResult:
    """Resolved unit price in the requested currency, with its provenance."""

    price: Decimal
    source: str

    @property
    def is_low_confidence(self) -> bool:
        return self.source == LOW_CONFIDENCE_SOURCE
