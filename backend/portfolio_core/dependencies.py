# backend/portfolio_core/dependencies.py
"""
Dependency injection module for FastAPI services.

Singleton service instances shared across all requests. Sharing matters:
each provider owns its circuit breaker, so one instance per provider makes
breaker state (and upstream rate limits) global to the process.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from portfolio_core.dependencies import get_portfolio_service

    @router.post("/valuation")
    def get_valuation(service: PortfolioService = Depends(get_portfolio_service)):
        ...

Tests replace any of these through `app.dependency_overrides`.
"""

import logging
from functools import lru_cache

from portfolio_core.config import settings
from portfolio_core.database import get_session_factory
from portfolio_core.services.circuit_breaker import CircuitBreaker
from portfolio_core.services.exceptions import ConfigurationMissingError, ProviderNoDataError
from portfolio_core.services.fx_rate_service import FXRateService
from portfolio_core.services.history import HistoryReconstructor
from portfolio_core.services.market_data import (
    CoinGeckoProvider,
    ExchangeRateApiProvider,
    FinnhubProvider,
    OpenAICompletionProvider,
    TiingoProvider,
    YahooFinanceProvider,
)
from portfolio_core.services.portfolio_service import PortfolioService
from portfolio_core.services.price_cache import CacheStore, InMemoryPriceCache, SqlPriceCache
from portfolio_core.services.pricing import PriceResolver, QuoteChain

logger = logging.getLogger(__name__)


def _breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.breaker_failure_threshold,
        recovery_timeout=settings.breaker_recovery_timeout,
        excluded_exceptions=(ProviderNoDataError, ConfigurationMissingError),
    )


# =============================================================================
# SINGLETON PROVIDERS
# =============================================================================
# Order matters: define dependencies before dependents
# 1. providers (no deps)
# 2. get_fx_rate_service (depends on the FX provider)
# 3. get_price_cache (depends on settings.cache_backend)
# 4. get_price_resolver (cache, FX service, providers)
# 5. get_history_reconstructor (history providers, FX service)
# 6. get_portfolio_service (resolver, reconstructor, FX service)


@lru_cache(maxsize=1)
def get_yahoo_provider() -> YahooFinanceProvider:
    """Last link of the quote chain and the daily close history source."""
    logger.debug("Initializing singleton YahooFinanceProvider")
    return YahooFinanceProvider(
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("yahoo"),
    )


@lru_cache(maxsize=1)
def get_tiingo_provider() -> TiingoProvider:
    return TiingoProvider(
        api_key=settings.tiingo_api_key,
        base_url=settings.tiingo_base_url,
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("tiingo"),
    )


@lru_cache(maxsize=1)
def get_finnhub_provider() -> FinnhubProvider:
    return FinnhubProvider(
        api_key=settings.finnhub_api_key,
        base_url=settings.finnhub_base_url,
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("finnhub"),
    )


@lru_cache(maxsize=1)
def get_coingecko_provider() -> CoinGeckoProvider:
    """Shared by batched coin prices and coin history (one rate limit)."""
    return CoinGeckoProvider(
        base_url=settings.coingecko_base_url,
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("coingecko"),
    )


@lru_cache(maxsize=1)
def get_completion_provider() -> OpenAICompletionProvider:
    return OpenAICompletionProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("openai"),
    )


@lru_cache(maxsize=1)
def get_fx_provider() -> ExchangeRateApiProvider:
    return ExchangeRateApiProvider(
        base_url=settings.fx_base_url,
        timeout=settings.provider_timeout_seconds,
        breaker=_breaker("exchangerate-api"),
    )


# =============================================================================
# SINGLETON SERVICES
# =============================================================================

@lru_cache(maxsize=1)
def get_fx_rate_service() -> FXRateService:
    logger.debug("Initializing singleton FXRateService")
    return FXRateService(provider=get_fx_provider(), base_currency=settings.base_currency)


@lru_cache(maxsize=1)
def get_price_cache() -> CacheStore:
    """SQL-backed by default; CACHE_BACKEND=memory keeps quotations in process."""
    if settings.cache_backend == "memory":
        logger.info("Price cache: in-memory")
        return InMemoryPriceCache()
    logger.info("Price cache: SQL")
    return SqlPriceCache(get_session_factory())


@lru_cache(maxsize=1)
def get_price_resolver() -> PriceResolver:
    """
    Exchange-traded chain: Tiingo, then Finnhub, then Yahoo Finance.
    Providers without a key are skipped at call time.
    """
    logger.debug("Initializing singleton PriceResolver")
    return PriceResolver(
        cache=get_price_cache(),
        fx_service=get_fx_rate_service(),
        quote_chain=QuoteChain([
            get_tiingo_provider(),
            get_finnhub_provider(),
            get_yahoo_provider(),
        ]),
        symbol_search=get_finnhub_provider(),
        coin_provider=get_coingecko_provider(),
        completion_provider=get_completion_provider(),
    )


@lru_cache(maxsize=1)
def get_history_reconstructor() -> HistoryReconstructor:
    logger.debug("Initializing singleton HistoryReconstructor")
    return HistoryReconstructor(
        quote_history=get_yahoo_provider(),
        coin_history=get_coingecko_provider(),
        fx_service=get_fx_rate_service(),
        max_assets=settings.history_max_assets,
        lookback_days=settings.history_lookback_days,
        max_workers=settings.history_max_workers,
    )


@lru_cache(maxsize=1)
def get_portfolio_service() -> PortfolioService:
    logger.debug("Initializing singleton PortfolioService")
    return PortfolioService(
        resolver=get_price_resolver(),
        fx_service=get_fx_rate_service(),
        reconstructor=get_history_reconstructor(),
        risk_free_rate=float(settings.risk_free_rate),
    )


def get_provider_breakers() -> list[CircuitBreaker]:
    """Breakers of every provider, for the health endpoint."""
    providers = [
        get_tiingo_provider(),
        get_finnhub_provider(),
        get_yahoo_provider(),
        get_coingecko_provider(),
        get_completion_provider(),
        get_fx_provider(),
    ]
    return [provider.breaker for provider in providers]
