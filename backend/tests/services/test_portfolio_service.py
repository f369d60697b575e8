# tests/services/test_portfolio_service.py
"""
Tests for PortfolioService, wired with in-memory fakes end to end.
"""

from datetime import date
from decimal import Decimal

import pytest

from portfolio_core.models import AssetClass
from portfolio_core.services.analytics import RiskLevel
from portfolio_core.services.exceptions import ValidationError
from portfolio_core.services.history import HistoryAsset, HistoryReconstructor
from portfolio_core.services.portfolio_service import PortfolioService
from portfolio_core.services.pricing import PriceResolver, QuoteChain
from portfolio_core.services.valuation import SOURCE_COST_BASIS, SOURCE_INTEREST_ACCRUAL

from tests.conftest import (
    FakeCoinProvider,
    FakeCompletionProvider,
    FakeHistoryProvider,
    FakeQuoteProvider,
    make_asset,
    make_series,
)

END = date(2025, 6, 1)


@pytest.fixture
def quotes():
    return FakeQuoteProvider("quotes", {"AAPL": ("165", "USD")})


@pytest.fixture
def coins():
    return FakeCoinProvider({
        "EUR": {"bitcoin": Decimal("60000")},
        "USD": {"bitcoin": Decimal("66000")},
    })


@pytest.fixture
def completion():
    return FakeCompletionProvider("250000")


@pytest.fixture
def reconstructor(fx_service):
    quote_history = FakeHistoryProvider("quote-history", {
        "AAPL": make_series("AAPL", "USD", {date(2025, 5, 1): "150"}),
    })
    coin_history = FakeHistoryProvider("coin-history", {
        "bitcoin": make_series("bitcoin", "EUR", {date(2025, 5, 1): "60000"}),
    })
    return HistoryReconstructor(quote_history, coin_history, fx_service, lookback_days=30)


@pytest.fixture
def service(memory_cache, fx_service, quotes, coins, completion, reconstructor, clock):
    resolver = PriceResolver(
        cache=memory_cache,
        fx_service=fx_service,
        quote_chain=QuoteChain([quotes]),
        coin_provider=coins,
        completion_provider=completion,
    )
    return PortfolioService(resolver, fx_service, reconstructor, clock=clock)


class TestPriceRequests:
    """Tests for price_requests_for()."""

    def test_fiat_is_not_requested(self, sample_assets):
        requests = PortfolioService.price_requests_for(sample_assets, "EUR")

        assert [r.asset_class for r in requests] == [
            AssetClass.EQUITY, AssetClass.CRYPTO, AssetClass.REAL_ESTATE,
        ]
        assert {r.currency for r in requests} == {"EUR"}

    def test_real_estate_carries_estimation_context(self, sample_assets):
        request = PortfolioService.price_requests_for(sample_assets, "EUR")[-1]

        assert request.identifier == "re-re1"
        assert request.estimation.purchase_price == Decimal("200000")
        assert request.estimation.description == {"sqm": Decimal("80"), "name": "Flat"}

    def test_force_refresh_is_propagated(self, sample_assets):
        requests = PortfolioService.price_requests_for(sample_assets, "EUR", force_refresh=True)

        assert all(r.force_refresh for r in requests)


class TestGetValuation:
    """Tests for get_valuation()."""

    def test_values_every_pricing_path(self, service, sample_assets):
        valuation = service.get_valuation(sample_assets)

        by_id = {a.asset_id: a for a in valuation.assets}
        assert by_id["eq1"].current_value == Decimal("1485.0")
        assert by_id["eq1"].price_source == "quotes"
        assert by_id["cr1"].current_value == Decimal("30000")
        assert by_id["fi1"].current_value == Decimal("1040")
        assert by_id["fi1"].price_source == SOURCE_INTEREST_ACCRUAL
        assert by_id["re1"].current_value == Decimal("250000")
        assert valuation.warnings == ()

    def test_base_currency_override(self, service, sample_assets, coins):
        valuation = service.get_valuation(sample_assets, base_currency="usd")

        assert valuation.base_currency == "USD"
        by_id = {a.asset_id: a for a in valuation.assets}
        assert by_id["eq1"].current_value == Decimal("1650")
        assert by_id["cr1"].current_value == Decimal("33000")
        assert by_id["fi1"].cost == Decimal("1100.0")
        assert coins.calls[-1][1] == "USD"

    def test_unavailable_prices_degrade_to_cost(self, service, quotes):
        quotes.quotes.clear()
        asset = make_asset(AssetClass.EQUITY, "eq1", "Apple", quantity="10", purchase_price="100", ticker="AAPL")

        valuation = service.get_valuation([asset])

        assert valuation.assets[0].price_source == SOURCE_COST_BASIS
        assert valuation.total_value == Decimal("1000")
        assert valuation.warnings

    def test_as_of_comes_from_clock(self, service, sample_assets, clock):
        assert service.get_valuation(sample_assets).as_of == clock()

    def test_fx_fetched_once_per_valuation(self, service, fx_provider):
        assets = [
            make_asset(AssetClass.EQUITY, "a1", quantity="1", purchase_price="10", currency="USD", ticker="AAPL"),
            make_asset(AssetClass.EQUITY, "a2", quantity="1", purchase_price="20", currency="USD", ticker="AAPL"),
        ]

        service.get_valuation(assets)

        assert fx_provider.calls == ["USD"]


class TestGetHistory:
    """Tests for get_history()."""

    def test_reconstructs(self, service):
        history = service.get_history(
            [HistoryAsset("AAPL", AssetClass.EQUITY, Decimal("10"))], end_date=END,
        )

        assert history.values == [1350.0] * 31

    def test_too_many_assets_is_rejected(self, service):
        assets = [HistoryAsset(f"S{i}", AssetClass.EQUITY, Decimal("1")) for i in range(16)]

        with pytest.raises(ValidationError) as exc_info:
            service.get_history(assets)

        assert exc_info.value.field == "assets"

    def test_without_reconstructor(self, memory_cache, fx_service):
        service = PortfolioService(
            PriceResolver(memory_cache, fx_service, QuoteChain([])), fx_service,
        )

        with pytest.raises(ValidationError):
            service.get_history([])


class TestAnalyze:
    """Tests for analyze()."""

    def test_analysis_with_history(self, service, sample_assets):
        analysis = service.analyze(sample_assets, end_date=END)

        assert analysis.valuation.total_value == Decimal("282525.0")
        assert analysis.concentration_pct == pytest.approx(250000 / 282525 * 100)
        assert analysis.risk_level == RiskLevel.MEDIUM
        assert analysis.alerts[0].title == "High real estate concentration"
        assert analysis.history.assets_included == 4
        # Prices are flat over the window
        assert analysis.series_risk.volatility == 0.0

    def test_history_uses_current_value_for_non_market_classes(self, service, sample_assets):
        analysis = service.analyze(sample_assets, end_date=END)

        assert analysis.history.values[-1] == pytest.approx(1350.0 + 30000.0 + 1040.0 + 250000.0)

    def test_without_history(self, service, sample_assets):
        analysis = service.analyze(sample_assets, include_history=False)

        assert analysis.history is None
        assert analysis.series_risk is None
        assert analysis.insights

    def test_large_portfolio_gets_skipped_history(self, service):
        assets = [
            make_asset(AssetClass.FIAT, f"f{i}", f"Cash {i}", quantity="100", purchase_price="1")
            for i in range(16)
        ]

        analysis = service.analyze(assets, end_date=END)

        assert analysis.history.skipped
        assert not analysis.series_risk.is_available
        assert any("exceeds the limit" in w for w in analysis.warnings)
