# backend/portfolio_core/services/market_data/__init__.py
"""
Upstream market data providers.

Architecture:
    MarketDataProvider (ABC, retry + circuit breaker)
    ├── QuoteProvider ........ TiingoProvider, FinnhubProvider, YahooFinanceProvider
    ├── SymbolSearchProvider . FinnhubProvider
    ├── CoinPriceProvider .... CoinGeckoProvider
    ├── HistoryProvider ...... YahooFinanceProvider, CoinGeckoProvider
    ├── CompletionProvider ... OpenAICompletionProvider
    └── FXRateProvider ....... ExchangeRateApiProvider

Usage:
    from portfolio_core.services.market_data import (
        QuoteProvider,
        TiingoProvider,
        FinnhubProvider,
    )
"""

from portfolio_core.services.market_data.base import (
    MarketDataProvider,
    QuoteProvider,
    SymbolSearchProvider,
    CoinPriceProvider,
    HistoryProvider,
    CompletionProvider,
    FXRateProvider,
    Quote,
    PricePoint,
    PriceSeries,
)
from portfolio_core.services.market_data.coingecko import CoinGeckoProvider
from portfolio_core.services.market_data.exchangerate import ExchangeRateApiProvider
from portfolio_core.services.market_data.finnhub import FinnhubProvider
from portfolio_core.services.market_data.openai import OpenAICompletionProvider
from portfolio_core.services.market_data.tiingo import TiingoProvider
from portfolio_core.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    # Interfaces
    "MarketDataProvider",
    "QuoteProvider",
    "SymbolSearchProvider",
    "CoinPriceProvider",
    "HistoryProvider",
    "CompletionProvider",
    "FXRateProvider",
    # Data classes
    "Quote",
    "PricePoint",
    "PriceSeries",
    # Implementations
    "CoinGeckoProvider",
    "ExchangeRateApiProvider",
    "FinnhubProvider",
    "OpenAICompletionProvider",
    "TiingoProvider",
    "YahooFinanceProvider",
]
