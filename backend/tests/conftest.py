# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database fixtures (in-memory SQLite)
- Fake providers for every market data capability
- A controllable clock and in-memory price cache
- Sample asset factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_core.models import AssetClass, Base
from portfolio_core.schemas.assets import Asset
from portfolio_core.services.exceptions import ProviderNoDataError, ProviderUnavailableError
from portfolio_core.services.fx_rate_service import FXRateService
from portfolio_core.services.history import HistoryReconstructor
from portfolio_core.services.market_data.base import (
    CoinPriceProvider,
    CompletionProvider,
    FXRateProvider,
    HistoryProvider,
    PricePoint,
    PriceSeries,
    Quote,
    QuoteProvider,
    SymbolSearchProvider,
)
from portfolio_core.services.portfolio_service import PortfolioService
from portfolio_core.services.price_cache import InMemoryPriceCache
from portfolio_core.services.pricing import PriceResolver, QuoteChain

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


# =============================================================================
# CLOCK AND CACHE
# =============================================================================

class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> InMemoryPriceCache:
    return InMemoryPriceCache(clock=clock)


# =============================================================================
# FAKE PROVIDERS
# =============================================================================

class FakeQuoteProvider(QuoteProvider):
    """
    Quote provider answering from a symbol table.

    A table value is either (price, currency) or an exception to raise.
    Unknown symbols raise ProviderNoDataError.
    """

    def __init__(self, name: str, quotes: dict[str, Any] | None = None) -> None:
        self._name = name
        super().__init__()
        self.quotes = quotes or {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def get_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        answer = self.quotes.get(symbol)
        if answer is None:
            raise ProviderNoDataError(self.name, symbol)
        if isinstance(answer, Exception):
            raise answer
        price, currency = answer
        return Quote(symbol=symbol, price=Decimal(str(price)), currency=currency, source=self.name)


class FakeSymbolSearch(SymbolSearchProvider):

    def __init__(self, symbols: dict[str, str] | None = None) -> None:
        super().__init__()
        self.symbols = symbols or {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "fake-search"

    def resolve_isin(self, isin: str) -> str:
        self.calls.append(isin)
        if isin not in self.symbols:
            raise ProviderNoDataError(self.name, isin)
        return self.symbols[isin]


class FakeCoinProvider(CoinPriceProvider):
    """Coin prices per currency: {"EUR": {"bitcoin": Decimal(...)}}."""

    def __init__(self, prices: dict[str, dict[str, Decimal]] | None = None, error: Exception | None = None) -> None:
        super().__init__()
        self.prices = prices or {}
        self.error = error
        self.calls: list[tuple[list[str], str]] = []

    @property
    def name(self) -> str:
        return "fake-coins"

    def get_prices(self, coin_ids: list[str], currency: str) -> dict[str, Decimal]:
        self.calls.append((list(coin_ids), currency))
        if self.error is not None:
            raise self.error
        table = self.prices.get(currency.upper(), {})
        return {coin_id: table[coin_id] for coin_id in coin_ids if coin_id in table}


class FakeCompletionProvider(CompletionProvider):

    def __init__(self, reply: str | Exception = "") -> None:
        super().__init__()
        self.reply = reply
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "fake-ai"

    def complete(self, prompt: str, max_tokens: int = 50) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class FakeFXProvider(FXRateProvider):
    """Rate tables keyed by source currency; missing sources are unavailable."""

    def __init__(self, tables: dict[str, dict[str, Decimal]] | None = None) -> None:
        super().__init__()
        self.tables = tables if tables is not None else {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "fake-fx"

    def get_rates(self, base_currency: str) -> dict[str, Decimal]:
        self.calls.append(base_currency)
        if base_currency not in self.tables:
            raise ProviderUnavailableError(self.name, "no table")
        return self.tables[base_currency]


class FakeHistoryProvider(HistoryProvider):
    """
    Daily series per identifier. A table value is a PriceSeries or an
    exception to raise; unknown identifiers raise ProviderNoDataError.
    """

    def __init__(self, name: str = "fake-history", series: dict[str, Any] | None = None) -> None:
        self._name = name
        super().__init__()
        self.series = series or {}
        self.calls: list[tuple[str, str, date, date]] = []

    @property
    def name(self) -> str:
        return self._name

    def get_daily_series(self, identifier: str, currency: str, start_date: date, end_date: date) -> PriceSeries:
        self.calls.append((identifier, currency, start_date, end_date))
        answer = self.series.get(identifier)
        if answer is None:
            raise ProviderNoDataError(self.name, identifier)
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_series(identifier: str, currency: str, values: dict[date, str]) -> PriceSeries:
    return PriceSeries(
        identifier=identifier,
        currency=currency,
        source="fake-history",
        points=[PricePoint(date=day, value=Decimal(value)) for day, value in sorted(values.items())],
    )


# =============================================================================
# FX FIXTURES
# =============================================================================

DEFAULT_FX_TABLES = {
    "USD": {"EUR": Decimal("0.9"), "GBP": Decimal("0.8")},
    "GBP": {"EUR": Decimal("1.2"), "USD": Decimal("1.25")},
    "EUR": {"USD": Decimal("1.1"), "GBP": Decimal("0.85")},
}


@pytest.fixture
def fx_provider() -> FakeFXProvider:
    return FakeFXProvider({k: dict(v) for k, v in DEFAULT_FX_TABLES.items()})


@pytest.fixture
def fx_service(fx_provider) -> FXRateService:
    return FXRateService(fx_provider, base_currency="EUR")


# =============================================================================
# ASSET FACTORIES
# =============================================================================

def make_asset(
        asset_class: AssetClass | str,
        asset_id: str = "a1",
        name: str = "Asset",
        quantity: str = "1",
        purchase_price: str = "0",
        currency: str = "EUR",
        purchase_date: datetime | date | None = None,
        **attributes: Any,
) -> Asset:
    return Asset.model_validate({
        "id": asset_id,
        "name": name,
        "asset_class": asset_class,
        "quantity": quantity,
        "purchase_price": purchase_price,
        "currency": currency,
        "purchase_date": purchase_date,
        "attributes": attributes,
    })


@pytest.fixture
def sample_assets() -> list[Asset]:
    """One holding per pricing path."""
    return [
        make_asset(AssetClass.EQUITY, "eq1", "Apple", quantity="10", purchase_price="100", ticker="AAPL"),
        make_asset(AssetClass.CRYPTO, "cr1", "Bitcoin", quantity="0.5", purchase_price="20000", symbol="BTC"),
        make_asset(
            AssetClass.FIAT, "fi1", "Savings", quantity="1000", purchase_price="1",
            purchase_date=NOW - timedelta(days=365.25), interest_rate="4",
        ),
        make_asset(AssetClass.REAL_ESTATE, "re1", "Flat", quantity="1", purchase_price="200000", sqm="80"),
    ]


# =============================================================================
# API FIXTURES
# =============================================================================

@pytest.fixture
def api_service(memory_cache, fx_service, clock):
    """PortfolioService wired to fakes only: no network, no database."""
    resolver = PriceResolver(
        cache=memory_cache,
        fx_service=fx_service,
        quote_chain=QuoteChain([
            FakeQuoteProvider("tiingo", {"AAPL": ("200", "USD")}),
            FakeQuoteProvider("yahoo", {"SAP.DE": ("210", "EUR")}),
        ]),
        coin_provider=FakeCoinProvider({"EUR": {"bitcoin": Decimal("60000")}}),
        completion_provider=FakeCompletionProvider("250,000"),
    )
    reconstructor = HistoryReconstructor(
        FakeHistoryProvider("quote-history", {
            "AAPL": make_series("AAPL", "USD", {date(2025, 5, 1): "150"}),
        }),
        FakeHistoryProvider("coin-history"),
        fx_service,
        lookback_days=30,
    )
    return PortfolioService(resolver, fx_service, reconstructor, clock=clock)


