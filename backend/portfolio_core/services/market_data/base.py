# backend/portfolio_core/services/market_data/base.py
"""
Abstract interfaces for upstream market data providers.

Every upstream source (Tiingo, Finnhub, Yahoo, CoinGecko, exchangerate-api,
OpenAI) is wrapped in a provider class implementing one of the capability
interfaces below. The price resolver and history reconstructor only ever
see these interfaces, which is what makes the provider chains declarative
and lets tests substitute in-memory fakes.

Capabilities:
    QuoteProvider         symbol -> latest Quote (exchange-traded classes)
    SymbolSearchProvider  ISIN -> trading symbol
    CoinPriceProvider     {coin ids} x currency -> prices, one call per batch
    HistoryProvider       identifier -> daily PriceSeries
    CompletionProvider    prompt -> free-form text
    FXRateProvider        base currency -> rate table

Resilience (shared by all providers, implemented once here):
    - tenacity retry with exponential backoff on ProviderUnavailableError
      and RateLimitError
      (a RateLimitError with Retry-After waits that long, up to RETRY_MAX_WAIT)
    - one CircuitBreaker per provider instance wrapping the retried call;
      ProviderNoDataError and ConfigurationMissingError do not trip it
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
from tenacity.wait import wait_base

from portfolio_core.services.circuit_breaker import CircuitBreaker
from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    ProviderNoDataError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# RETRY POLICY
# =============================================================================

class wait_retry_after(wait_base):
    """
    Sleep for the Retry-After the upstream asked for, capped at `max_wait`;
    any other failure falls back to `fallback`.
    """

    def __init__(self, fallback: wait_base, max_wait: float) -> None:
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitError) and error.retry_after:
            return min(float(error.retry_after), self.max_wait)
        return self.fallback(retry_state)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest price of one instrument, in the provider's native currency.

    Attributes:
        symbol: Symbol actually queried (after ISIN resolution)
        price: Unit price as reported (QuoteChain skips non-positive ones)
        currency: ISO 4217 code the price is expressed in
        source: Provider tag ("tiingo", "finnhub", "yahoo", ...)
    """

    symbol: str
    price: Decimal
    currency: str
    source: str


@dataclass(frozen=True)
class PricePoint:
    """One daily observation of a provider series."""

    date: date
    value: Decimal


@dataclass
class PriceSeries:
    """
    Provider-native daily series for one instrument.

    Points are ascending by date with at most one point per day; gaps
    (weekends, holidays) are expected and filled downstream.
    """

    identifier: str
    currency: str
    source: str
    points: list[PricePoint] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.points


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Base class for all upstream providers.

    Subclasses call `_execute_with_retry` around every outbound request.
    The retry policy can be tuned per subclass through class attributes,
    or per instance through the `retry_attempts` constructor argument.
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    def __init__(
            self,
            breaker: CircuitBreaker | None = None,
            retry_attempts: int | None = None,
    ) -> None:
        self._breaker = breaker or CircuitBreaker(
            name=self.name,
            excluded_exceptions=(ProviderNoDataError, ConfigurationMissingError),
        )
        self._retry_attempts = retry_attempts or self.MAX_RETRY_ATTEMPTS

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider tag, also used as the price `source` and breaker name."""
        pass

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Run `func` behind this provider's circuit breaker, retrying
        transient failures with exponential backoff.

        A fully retried call counts as a single breaker failure.

        Raises:
            CircuitBreakerOpen: Provider circuit is open, nothing was sent
            The last exception raised by `func` once retries are exhausted
        """

        @retry(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_retry_after(
                fallback=wait_exponential(
                    multiplier=self.RETRY_MULTIPLIER,
                    min=self.RETRY_MIN_WAIT,
                    max=self.RETRY_MAX_WAIT,
                ),
                max_wait=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        with self._breaker:
            return _inner()


# =============================================================================
# CAPABILITY INTERFACES
# =============================================================================

class QuoteProvider(MarketDataProvider):
    """Latest quote for an exchange-traded symbol."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """
        Raises:
            ConfigurationMissingError: No credential configured
            ProviderNoDataError: Answered, but without a positive price
            ProviderUnavailableError: Network or HTTP failure
            RateLimitError: Upstream rate limit hit
        """
        pass


class SymbolSearchProvider(MarketDataProvider):
    """Resolves an ISIN to a trading symbol."""

    @abstractmethod
    def resolve_isin(self, isin: str) -> str:
        """
        Returns the preferred trading symbol for `isin`.

        Raises:
            ProviderNoDataError: Search returned no symbol
        """
        pass


class CoinPriceProvider(MarketDataProvider):
    """Spot prices for many coins in a single request."""

    @abstractmethod
    def get_prices(self, coin_ids: list[str], currency: str) -> dict[str, Decimal]:
        """
        Returns coin id -> positive price in `currency`.

        Coins the provider does not know, or quotes as zero, are omitted.
        """
        pass


class HistoryProvider(MarketDataProvider):
    """Daily closing values over a date range."""

    @abstractmethod
    def get_daily_series(
            self,
            identifier: str,
            currency: str,
            start_date: date,
            end_date: date,
    ) -> PriceSeries:
        """
        Args:
            identifier: Provider-specific symbol or coin id
            currency: Requested currency (providers may ignore it and report
                      their native currency in the returned series)
            start_date: First day (inclusive)
            end_date: Last day (inclusive)
        """
        pass


class CompletionProvider(MarketDataProvider):
    """Generic text completion, used for real estate value estimates."""

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int = 50) -> str:
        pass


class FXRateProvider(MarketDataProvider):
    """Exchange rate tables."""

    @abstractmethod
    def get_rates(self, base_currency: str) -> dict[str, Decimal]:
        """
        Returns quote currency -> units of quote currency per one unit
        of `base_currency`.
        """
        pass
