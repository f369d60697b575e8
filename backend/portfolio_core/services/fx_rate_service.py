# backend/portfolio_core/services/fx_rate_service.py
"""
Currency normalization for one resolution batch.

=============================================================================
FX RATE CONVENTION
=============================================================================

    rate(from_currency, to_currency) = units of to_currency per 1 from_currency

Example:
    rate("USD", "EUR") = 0.92   ->   1 USD = 0.92 EUR
    EUR_amount = USD_amount * rate

=============================================================================

Rates are never persisted. Each price resolution or valuation cycle opens
an FXBatch; within a batch every source currency's rate table is fetched
from the provider at most once, however many assets need it.

When the provider fails, the hardcoded EUR-terms table in
services/constants.py is used, cross-rated through EUR for other targets:

    rate(GBP, CHF) = FALLBACK_EUR_RATES[GBP] / FALLBACK_EUR_RATES[CHF]

A pair the fallback table cannot express raises FXRateNotFoundError.

Usage:
    from portfolio_core.services.fx_rate_service import FXRateService

    service = FXRateService(provider, base_currency="EUR")
    batch = service.begin_batch()

    batch.rate("USD")                 # Decimal("0.92"), into EUR
    batch.convert(Decimal("100"), "USD")
    batch.rate("USD", "GBP")          # explicit target
"""

import logging
import threading
from decimal import Decimal

from portfolio_core.services.circuit_breaker import CircuitBreakerOpen
from portfolio_core.services.constants import FALLBACK_EUR_RATES
from portfolio_core.services.exceptions import (
    FXRateNotFoundError,
    FXProviderError,
    MarketDataError,
)
from portfolio_core.services.market_data.base import FXRateProvider

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class FXBatch:
    """
    Per-batch FX rate memo.

    Thread-safe: the history reconstructor converts series from worker threads.

    Attributes:
        base_currency: Default target of rate() and convert()
        fallback_pairs: Pairs answered from the hardcoded table
    """

    def __init__(self, provider: FXRateProvider | None, base_currency: str) -> None:
        self._provider = provider
        self.base_currency = base_currency.upper()
        self._tables: dict[str, dict[str, Decimal] | None] = {}
        self._lock = threading.Lock()
        self.fallback_pairs: set[tuple[str, str]] = set()

    def rate(self, from_currency: str, to_currency: str | None = None) -> Decimal:
        """
        Multiplier converting `from_currency` amounts into `to_currency`
        (the batch's base currency by default).

        Raises:
            FXRateNotFoundError: Provider failed and no fallback exists for the pair
        """
        source = from_currency.upper()
        target = (to_currency or self.base_currency).upper()
        if source == target:
            return ONE

        table = self._table_for(source)
        if table is not None and target in table:
            return table[target]

        return self._fallback_rate(source, target)

    def convert(self, amount: Decimal, from_currency: str, to_currency: str | None = None) -> Decimal:
        return amount * self.rate(from_currency, to_currency)

    def snapshot(self, currencies: set[str]) -> dict[str, Decimal]:
        """
        Rates into the base currency for every convertible currency given.
        Currencies without any rate are left out.
        """
        rates: dict[str, Decimal] = {}
        for currency in sorted(currencies):
            try:
                rates[currency.upper()] = self.rate(currency)
            except FXRateNotFoundError as e:
                logger.warning(f"{e.message}; amounts in {currency} stay unconverted")
        return rates

    def _table_for(self, source: str) -> dict[str, Decimal] | None:
        with self._lock:
            if source in self._tables:
                return self._tables[source]

            table: dict[str, Decimal] | None = None
            if self._provider is not None:
                try:
                    table = self._provider.get_rates(source)
                except (MarketDataError, CircuitBreakerOpen) as e:
                    error = FXProviderError(self._provider.name, str(e))
                    logger.warning(f"{error.message}; using fallback rates for {source}")

            # A failed fetch is memoized too: one attempt per currency per batch
            self._tables[source] = table
            return table

    def _fallback_rate(self, source: str, target: str) -> Decimal:
        source_in_eur = FALLBACK_EUR_RATES.get(source)
        target_in_eur = FALLBACK_EUR_RATES.get(target)
        if source_in_eur is None or target_in_eur is None:
            raise FXRateNotFoundError(source, target)

        with self._lock:
            self.fallback_pairs.add((source, target))
        return source_in_eur / target_in_eur


class FXRateService:
    """
    Factory for FX batches bound to one provider and reporting currency.

    Example:
        service = FXRateService(ExchangeRateApiProvider(), base_currency="EUR")
        batch = service.begin_batch()
    """

    def __init__(self, provider: FXRateProvider | None, base_currency: str = "EUR") -> None:
        self._provider = provider
        self._base_currency = base_currency.upper()
        logger.info(
            f"FXRateService initialized (provider={provider.name if provider else None}, "
            f"base_currency={self._base_currency})"
        )

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def begin_batch(self, base_currency: str | None = None) -> FXBatch:
        return FXBatch(self._provider, base_currency or self._base_currency)
