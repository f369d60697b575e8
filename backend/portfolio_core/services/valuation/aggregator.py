# backend/portfolio_core/services/valuation/aggregator.py
"""
Portfolio valuation from an asset snapshot and a resolved price map.

Per holding:
    cost   = purchase_price x quantity            (converted into base)
    value  = fiat:      quantity x growth factor  (converted into base)
             priced:    price x quantity          (price already in base)
             unpriced:  cost                      (never-fail degrade)
    roi    = (value - cost) / cost x 100, or 0 without cost

Roll-ups keep the order in which classes first appear in the snapshot.
Totals are summed from the roll-ups, so class sums and totals agree exactly.

The aggregator performs no I/O and reads no clock: identical inputs give
identical output.

Usage:
    valuation = ValuationAggregator().aggregate(
        assets, prices, fx_rates={"USD": Decimal("0.92")},
        base_currency="EUR", as_of=datetime.now(timezone.utc),
    )
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal

from portfolio_core.models import AssetClass
from portfolio_core.schemas.assets import Asset
from portfolio_core.services.price_cache import QuoteKey
from portfolio_core.services.pricing.types import PriceResult
from portfolio_core.services.valuation.calculators import (
    CostCalculator,
    InterestAccrualCalculator,
    ONE,
    ZERO,
    roi_percent,
)
from portfolio_core.services.valuation.types import (
    AssetValuation,
    ClassRollup,
    PortfolioValuation,
    SOURCE_COST_BASIS,
    SOURCE_INTEREST_ACCRUAL,
)

logger = logging.getLogger(__name__)


class ValuationAggregator:

    def __init__(self) -> None:
        self._cost_calculator = CostCalculator()
        self._accrual_calculator = InterestAccrualCalculator()

    def aggregate(
            self,
            assets: list[Asset],
            prices: Mapping[QuoteKey, PriceResult],
            fx_rates: Mapping[str, Decimal],
            base_currency: str,
            as_of: datetime,
    ) -> PortfolioValuation:
        """
        Args:
            assets: Immutable asset snapshot
            prices: Resolver output, requested in `base_currency`
            fx_rates: Holding currency -> multiplier into `base_currency`
            base_currency: Reporting currency
            as_of: Valuation instant (drives fiat interest accrual)
        """
        base_currency = base_currency.upper()
        warnings: list[str] = []
        valuations: list[AssetValuation] = []
        rollups: dict[AssetClass, list[Decimal | int]] = {}

        for asset in assets:
            rate = self._rate_for(asset.currency, fx_rates, base_currency, warnings)
            valuation = self._value_asset(asset, prices, rate, base_currency, as_of)
            valuations.append(valuation)

            value_cost_count = rollups.setdefault(asset.asset_class, [ZERO, ZERO, 0])
            value_cost_count[0] += valuation.current_value
            value_cost_count[1] += valuation.cost
            value_cost_count[2] += 1

        by_class = tuple(
            ClassRollup(asset_class=asset_class, value=value, cost=cost, asset_count=count)
            for asset_class, (value, cost, count) in rollups.items()
        )
        total_value = sum((r.value for r in by_class), ZERO)
        total_cost = sum((r.cost for r in by_class), ZERO)

        unpriced = [v.name for v in valuations if not v.is_priced]
        if unpriced:
            warnings.append(f"Valued at cost basis (no price available): {', '.join(unpriced)}")

        return PortfolioValuation(
            base_currency=base_currency,
            as_of=as_of,
            assets=tuple(valuations),
            by_class=by_class,
            total_value=total_value,
            total_cost=total_cost,
            warnings=tuple(warnings),
        )

    def _value_asset(
            self,
            asset: Asset,
            prices: Mapping[QuoteKey, PriceResult],
            rate: Decimal,
            base_currency: str,
            as_of: datetime,
    ) -> AssetValuation:
        cost = self._cost_calculator.calculate(asset, rate)

        if asset.asset_class == AssetClass.FIAT:
            current_price, current_value = self._accrual_calculator.calculate(asset, as_of, rate)
            source = SOURCE_INTEREST_ACCRUAL
        else:
            key = QuoteKey.build(asset.price_identifier(), asset.asset_class, base_currency)
            result = prices.get(key)
            if result is not None:
                current_price = result.price
                current_value = result.price * asset.quantity
                source = result.source
            else:
                current_price = None
                current_value = cost
                source = SOURCE_COST_BASIS

        return AssetValuation(
            asset_id=asset.id,
            name=asset.name,
            asset_class=asset.asset_class,
            quantity=asset.quantity,
            cost=cost,
            current_price=current_price,
            current_value=current_value,
            roi=roi_percent(current_value, cost),
            price_source=source,
        )

    @staticmethod
    def _rate_for(
            currency: str,
            fx_rates: Mapping[str, Decimal],
            base_currency: str,
            warnings: list[str],
    ) -> Decimal:
        if currency == base_currency:
            return ONE
        rate = fx_rates.get(currency)
        if rate is None:
            message = f"No {currency}/{base_currency} rate; {currency} amounts left unconverted"
            if message not in warnings:
                logger.warning(message)
                warnings.append(message)
            return ONE
        return rate
