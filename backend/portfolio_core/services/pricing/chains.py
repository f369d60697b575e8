# backend/portfolio_core/services/pricing/chains.py
"""
Declarative provider fallback chains.

A chain is an ordered list of QuoteProvider strategies. Quoting walks the
list and returns the first provider's positive price, converted into the
requested currency. Any provider failure (no credential, no data, network,
rate limit, open circuit, missing FX rate) is logged and the next provider
is tried. When the list is exhausted, ResolutionExhaustedError carries the
failure of every attempt.

Usage:
    chain = QuoteChain([tiingo, finnhub, yahoo])
    result = chain.quote("AAPL", "EUR", fx_batch)
"""

import logging

from portfolio_core.services.circuit_breaker import CircuitBreakerOpen
from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    FXRateError,
    MarketDataError,
    ResolutionExhaustedError,
)
from portfolio_core.services.fx_rate_service import FXBatch
from portfolio_core.services.market_data.base import QuoteProvider
from portfolio_core.services.pricing.types import PriceResult

logger = logging.getLogger(__name__)

# Errors meaning "this provider cannot answer right now, ask the next one"
PROVIDER_FAILURES = (MarketDataError, FXRateError, CircuitBreakerOpen)


class QuoteChain:
    """Ordered quote providers for one group of asset classes."""

    def __init__(self, providers: list[QuoteProvider]) -> None:
        self.providers: tuple[QuoteProvider, ...] = tuple(providers)

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    def quote(self, symbol: str, currency: str, fx_batch: FXBatch) -> PriceResult:
        """
        First usable price for `symbol`, expressed in `currency`.

        Raises:
            ResolutionExhaustedError: Every provider failed
        """
        attempts: dict[str, str] = {}

        for provider in self.providers:
            try:
                quote = provider.get_quote(symbol)
                price = fx_batch.convert(quote.price, quote.currency, currency)
            except ConfigurationMissingError as e:
                attempts[provider.name] = e.message
                logger.debug(f"Skipping {provider.name} for {symbol}: {e.message}")
                continue
            except PROVIDER_FAILURES as e:
                attempts[provider.name] = str(e)
                logger.warning(f"Provider {provider.name} failed for {symbol}: {e}")
                continue

            if price <= 0:
                attempts[provider.name] = "non-positive price"
                continue

            if attempts:
                logger.info(f"Priced {symbol} via {provider.name} after {len(attempts)} failed provider(s)")
            return PriceResult(price=price, source=provider.name)

        raise ResolutionExhaustedError(symbol, attempts)
