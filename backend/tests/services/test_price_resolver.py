# tests/services/test_price_resolver.py
"""
Tests for PriceResolver and QuoteChain.

Covers:
- Provider fallback order and source tagging
- Cache hits, force_refresh and batch de-duplication
- Batched coin pricing (one call per currency)
- ISIN resolution for ETFs and funds
- Real estate estimates and the low-confidence purchase price fallback
"""

from decimal import Decimal

import pytest

from portfolio_core.models import AssetClass
from portfolio_core.services.circuit_breaker import CircuitBreakerOpen
from portfolio_core.services.constants import LOW_CONFIDENCE_SOURCE
from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    ProviderUnavailableError,
    RateLimitError,
    ResolutionExhaustedError,
)
from portfolio_core.services.price_cache import PriceQuotation, QuoteKey
from portfolio_core.services.pricing import (
    EstimationContext,
    PriceRequest,
    PriceResolver,
    QuoteChain,
)
from portfolio_core.services.pricing.resolver import build_estimation_prompt, parse_estimate

from tests.conftest import (
    FakeCoinProvider,
    FakeCompletionProvider,
    FakeQuoteProvider,
    FakeSymbolSearch,
)


def make_resolver(memory_cache, fx_service, providers=None, **kwargs) -> PriceResolver:
    return PriceResolver(
        cache=memory_cache,
        fx_service=fx_service,
        quote_chain=QuoteChain(providers or []),
        **kwargs,
    )


def equity(identifier: str = "AAPL", currency: str = "EUR", **kwargs) -> PriceRequest:
    return PriceRequest(identifier, AssetClass.EQUITY, currency, **kwargs)


# =============================================================================
# QUOTE CHAIN
# =============================================================================

class TestQuoteChain:
    """Tests for ordered provider fallback."""

    def test_first_provider_wins(self, fx_service):
        first = FakeQuoteProvider("first", {"AAPL": ("150", "EUR")})
        second = FakeQuoteProvider("second", {"AAPL": ("999", "EUR")})

        result = QuoteChain([first, second]).quote("AAPL", "EUR", fx_service.begin_batch())

        assert result.price == Decimal("150")
        assert result.source == "first"
        assert second.calls == []

    def test_falls_through_failures_and_tags_last_source(self, fx_service):
        a = FakeQuoteProvider("a", {"AAPL": ProviderUnavailableError("a", "timeout")})
        b = FakeQuoteProvider("b", {"AAPL": RateLimitError("b")})
        c = FakeQuoteProvider("c", {"AAPL": ("150", "EUR")})

        result = QuoteChain([a, b, c]).quote("AAPL", "EUR", fx_service.begin_batch())

        assert result.source == "c"
        assert a.calls == b.calls == c.calls == ["AAPL"]

    def test_missing_credential_and_open_circuit_are_skipped(self, fx_service):
        a = FakeQuoteProvider("a", {"AAPL": ConfigurationMissingError("a", "A_API_KEY")})
        b = FakeQuoteProvider("b", {"AAPL": CircuitBreakerOpen("b", 12.0)})
        c = FakeQuoteProvider("c", {"AAPL": ("10", "EUR")})

        assert QuoteChain([a, b, c]).quote("AAPL", "EUR", fx_service.begin_batch()).source == "c"

    def test_converts_native_currency(self, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ("200", "USD")})

        result = QuoteChain([provider]).quote("AAPL", "EUR", fx_service.begin_batch())

        assert result.price == Decimal("180.0")

    def test_non_positive_price_is_skipped(self, fx_service):
        a = FakeQuoteProvider("a", {"AAPL": ("0", "EUR")})
        b = FakeQuoteProvider("b", {"AAPL": ("5", "EUR")})

        assert QuoteChain([a, b]).quote("AAPL", "EUR", fx_service.begin_batch()).source == "b"

    def test_exhausted_chain_reports_every_attempt(self, fx_service):
        a = FakeQuoteProvider("a")
        b = FakeQuoteProvider("b", {"AAPL": ProviderUnavailableError("b", "down")})

        with pytest.raises(ResolutionExhaustedError) as exc_info:
            QuoteChain([a, b]).quote("AAPL", "EUR", fx_service.begin_batch())

        assert set(exc_info.value.attempts) == {"a", "b"}

    def test_names(self):
        chain = QuoteChain([FakeQuoteProvider("x"), FakeQuoteProvider("y")])

        assert chain.names == ["x", "y"]


# =============================================================================
# CACHE INTERPLAY
# =============================================================================

class TestResolverCache:
    """Tests for cache-first resolution."""

    def test_cache_hit_skips_providers(self, memory_cache, fx_service, clock):
        provider = FakeQuoteProvider("p", {"AAPL": ("999", "EUR")})
        key = QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")
        memory_cache.put(PriceQuotation(key, Decimal("150"), "tiingo", clock()))

        results = make_resolver(memory_cache, fx_service, [provider]).resolve([equity()])

        assert results[key].price == Decimal("150")
        assert results[key].source == "tiingo"
        assert provider.calls == []

    def test_result_is_written_to_cache(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ("150", "EUR")})

        make_resolver(memory_cache, fx_service, [provider]).resolve([equity()])

        cached = memory_cache.get(QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR"))
        assert cached is not None
        assert cached.price == Decimal("150")

    def test_second_resolve_is_served_from_cache(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ("150", "EUR")})
        resolver = make_resolver(memory_cache, fx_service, [provider])

        first = resolver.resolve([equity()])
        second = resolver.resolve([equity()])

        assert first == second
        assert provider.calls == ["AAPL"]

    def test_stale_entry_is_refetched(self, memory_cache, fx_service, clock):
        provider = FakeQuoteProvider("p", {"AAPL": ("160", "EUR")})
        key = QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")
        memory_cache.put(PriceQuotation(key, Decimal("150"), "p", clock()))

        clock.advance(minutes=6)
        results = make_resolver(memory_cache, fx_service, [provider]).resolve([equity()])

        assert results[key].price == Decimal("160")

    def test_force_refresh_bypasses_cache(self, memory_cache, fx_service, clock):
        provider = FakeQuoteProvider("p", {"AAPL": ("160", "EUR")})
        key = QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")
        memory_cache.put(PriceQuotation(key, Decimal("150"), "p", clock()))

        results = make_resolver(memory_cache, fx_service, [provider]).resolve(
            [equity(force_refresh=True)]
        )

        assert results[key].price == Decimal("160")
        assert memory_cache.get(key).price == Decimal("160")

    def test_duplicates_resolved_once(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ("150", "EUR")})

        results = make_resolver(memory_cache, fx_service, [provider]).resolve(
            [equity(), equity(), equity(currency="eur")]
        )

        assert len(results) == 1
        assert provider.calls == ["AAPL"]

    def test_duplicate_with_force_refresh_wins(self, memory_cache, fx_service, clock):
        provider = FakeQuoteProvider("p", {"AAPL": ("160", "EUR")})
        key = QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")
        memory_cache.put(PriceQuotation(key, Decimal("150"), "p", clock()))

        results = make_resolver(memory_cache, fx_service, [provider]).resolve(
            [equity(), equity(force_refresh=True)]
        )

        assert results[key].price == Decimal("160")

    def test_currencies_resolved_separately(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ("200", "USD")})

        results = make_resolver(memory_cache, fx_service, [provider]).resolve(
            [equity(currency="EUR"), equity(currency="USD")]
        )

        assert results[QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")].price == Decimal("180.0")
        assert results[QuoteKey.build("AAPL", AssetClass.EQUITY, "USD")].price == Decimal("200")


# =============================================================================
# FAILURE POLICY
# =============================================================================

class TestResolverFailures:
    """Nothing raised by a provider escapes resolve()."""

    def test_exhausted_asset_is_absent(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"AAPL": ProviderUnavailableError("p", "down")})

        results = make_resolver(memory_cache, fx_service, [provider]).resolve([equity()])

        assert results == {}

    def test_failure_does_not_affect_other_assets(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p", {"MSFT": ("300", "EUR")})

        results = make_resolver(memory_cache, fx_service, [provider]).resolve(
            [equity("AAPL"), equity("MSFT")]
        )

        assert list(results) == [QuoteKey.build("MSFT", AssetClass.EQUITY, "EUR")]

    def test_zero_quote_falls_through_for_every_asset(self, memory_cache, fx_service):
        zero = FakeQuoteProvider("zero", {"AAPL": ("0", "EUR"), "MSFT": ("-1", "EUR")})
        good = FakeQuoteProvider("good", {"AAPL": ("190", "EUR"), "MSFT": ("300", "EUR")})

        results = make_resolver(memory_cache, fx_service, [zero, good]).resolve(
            [equity("AAPL"), equity("MSFT")]
        )

        assert {key.identifier: r.source for key, r in results.items()} == {"AAPL": "good", "MSFT": "good"}
        assert results[QuoteKey.build("MSFT", AssetClass.EQUITY, "EUR")].price == Decimal("300")

    def test_zero_quote_only_leaves_asset_unpriced(self, memory_cache, fx_service):
        zero = FakeQuoteProvider("zero", {"AAPL": ("0", "EUR"), "MSFT": ("300", "EUR")})

        results = make_resolver(memory_cache, fx_service, [zero]).resolve(
            [equity("AAPL"), equity("MSFT")]
        )

        assert list(results) == [QuoteKey.build("MSFT", AssetClass.EQUITY, "EUR")]
        assert memory_cache.get(QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")) is None

    def test_coin_provider_failure_is_contained(self, memory_cache, fx_service):
        coins = FakeCoinProvider(error=ProviderUnavailableError("fake-coins", "down"))
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        results = resolver.resolve([PriceRequest("BTC", AssetClass.CRYPTO, "EUR")])

        assert results == {}

    def test_non_market_classes_are_not_priced(self, memory_cache, fx_service):
        provider = FakeQuoteProvider("p")
        resolver = make_resolver(memory_cache, fx_service, [provider])

        results = resolver.resolve([
            PriceRequest("cash", AssetClass.FIAT, "EUR"),
            PriceRequest("startup", AssetClass.PRIVATE_EQUITY, "EUR"),
        ])

        assert results == {}
        assert provider.calls == []

    def test_empty_batch(self, memory_cache, fx_service):
        assert make_resolver(memory_cache, fx_service).resolve([]) == {}


# =============================================================================
# COINS
# =============================================================================

class TestCoinResolution:
    """Tests for batched crypto and precious metal pricing."""

    def test_one_call_per_currency(self, memory_cache, fx_service):
        coins = FakeCoinProvider({
            "EUR": {"bitcoin": Decimal("60000"), "ethereum": Decimal("3000")},
            "USD": {"bitcoin": Decimal("65000")},
        })
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        results = resolver.resolve([
            PriceRequest("BTC", AssetClass.CRYPTO, "EUR"),
            PriceRequest("Ethereum (ETH)", AssetClass.CRYPTO, "EUR"),
            PriceRequest("bitcoin", AssetClass.CRYPTO, "USD"),
        ])

        assert sorted(currency for _, currency in coins.calls) == ["EUR", "USD"]
        assert results[QuoteKey.build("btc", AssetClass.CRYPTO, "EUR")].price == Decimal("60000")
        assert results[QuoteKey.build("BITCOIN", AssetClass.CRYPTO, "USD")].source == "fake-coins"
        assert len(results) == 3

    def test_same_coin_id_requested_once(self, memory_cache, fx_service):
        coins = FakeCoinProvider({"EUR": {"bitcoin": Decimal("60000")}})
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        results = resolver.resolve([
            PriceRequest("BTC", AssetClass.CRYPTO, "EUR"),
            PriceRequest("bitcoin", AssetClass.CRYPTO, "EUR"),
        ])

        assert coins.calls == [(["bitcoin"], "EUR")]
        assert len(results) == 2

    def test_missing_coin_price_is_absent(self, memory_cache, fx_service):
        coins = FakeCoinProvider({"EUR": {"bitcoin": Decimal("60000")}})
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        results = resolver.resolve([
            PriceRequest("BTC", AssetClass.CRYPTO, "EUR"),
            PriceRequest("obscurecoin", AssetClass.CRYPTO, "EUR"),
        ])

        assert list(results) == [QuoteKey.build("btc", AssetClass.CRYPTO, "EUR")]

    def test_metal_priced_through_token_proxy(self, memory_cache, fx_service):
        coins = FakeCoinProvider({"EUR": {"pax-gold": Decimal("2100")}})
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        results = resolver.resolve([PriceRequest("Gold", AssetClass.PRECIOUS_METAL, "EUR")])

        assert results[QuoteKey.build("gold", AssetClass.PRECIOUS_METAL, "EUR")].price == Decimal("2100")

    def test_metal_without_proxy_is_unpriced(self, memory_cache, fx_service):
        coins = FakeCoinProvider({"EUR": {}})
        resolver = make_resolver(memory_cache, fx_service, coin_provider=coins)

        assert resolver.resolve([PriceRequest("rhodium", AssetClass.PRECIOUS_METAL, "EUR")]) == {}
        assert coins.calls == []

    def test_without_coin_provider(self, memory_cache, fx_service):
        resolver = make_resolver(memory_cache, fx_service)

        assert resolver.resolve([PriceRequest("BTC", AssetClass.CRYPTO, "EUR")]) == {}


# =============================================================================
# ISIN
# =============================================================================

class TestIsinResolution:
    """Tests for ISIN -> symbol lookup before quoting."""

    ISIN = "IE00B4L5Y983"

    def test_etf_isin_is_resolved(self, memory_cache, fx_service):
        search = FakeSymbolSearch({self.ISIN: "IWDA.AS"})
        provider = FakeQuoteProvider("p", {"IWDA.AS": ("90", "EUR")})
        resolver = make_resolver(memory_cache, fx_service, [provider], symbol_search=search)

        results = resolver.resolve([PriceRequest(self.ISIN, AssetClass.ETF, "EUR")])

        assert results[QuoteKey.build(self.ISIN, AssetClass.ETF, "EUR")].price == Decimal("90")
        assert provider.calls == ["IWDA.AS"]

    def test_failed_lookup_quotes_isin_as_is(self, memory_cache, fx_service):
        search = FakeSymbolSearch({})
        provider = FakeQuoteProvider("p", {self.ISIN: ("90", "EUR")})
        resolver = make_resolver(memory_cache, fx_service, [provider], symbol_search=search)

        results = resolver.resolve([PriceRequest(self.ISIN, AssetClass.FUND, "EUR")])

        assert len(results) == 1
        assert provider.calls == [self.ISIN]

    def test_equities_are_not_looked_up(self, memory_cache, fx_service):
        search = FakeSymbolSearch({self.ISIN: "IWDA.AS"})
        provider = FakeQuoteProvider("p", {self.ISIN: ("90", "EUR")})
        resolver = make_resolver(memory_cache, fx_service, [provider], symbol_search=search)

        resolver.resolve([PriceRequest(self.ISIN, AssetClass.EQUITY, "EUR")])

        assert search.calls == []

    def test_plain_symbols_are_not_looked_up(self, memory_cache, fx_service):
        search = FakeSymbolSearch()
        provider = FakeQuoteProvider("p", {"VWCE.DE": ("110", "EUR")})
        resolver = make_resolver(memory_cache, fx_service, [provider], symbol_search=search)

        resolver.resolve([PriceRequest("VWCE.DE", AssetClass.ETF, "EUR")])

        assert search.calls == []


# =============================================================================
# REAL ESTATE
# =============================================================================

class TestRealEstateResolution:
    """Tests for AI estimates and the purchase price fallback."""

    KEY = QuoteKey.build("re-1", AssetClass.REAL_ESTATE, "EUR")

    def _request(self, purchase_price="300000", currency="EUR", force_refresh=False):
        return PriceRequest(
            "re-1",
            AssetClass.REAL_ESTATE,
            "EUR",
            force_refresh=force_refresh,
            estimation=EstimationContext(
                purchase_price=Decimal(purchase_price),
                currency=currency,
                description={"city": "Lisbon", "size_sqm": 80},
            ),
        )

    def test_estimate_is_parsed_and_cached(self, memory_cache, fx_service):
        ai = FakeCompletionProvider("Approximately 425,000 EUR")
        resolver = make_resolver(memory_cache, fx_service, completion_provider=ai)

        results = resolver.resolve([self._request()])

        assert results[self.KEY].price == Decimal("425000")
        assert results[self.KEY].source == "fake-ai"
        assert memory_cache.get(self.KEY).price == Decimal("425000")

    def test_prompt_describes_property(self, memory_cache, fx_service):
        ai = FakeCompletionProvider("425000")
        make_resolver(memory_cache, fx_service, completion_provider=ai).resolve([self._request()])

        assert "Lisbon" in ai.prompts[0]
        assert "300000 EUR" in ai.prompts[0]

    def test_unparseable_reply_falls_back_to_purchase_price(self, memory_cache, fx_service):
        ai = FakeCompletionProvider("I cannot estimate that.")
        resolver = make_resolver(memory_cache, fx_service, completion_provider=ai)

        results = resolver.resolve([self._request()])

        assert results[self.KEY].price == Decimal("300000")
        assert results[self.KEY].source == LOW_CONFIDENCE_SOURCE

    def test_provider_error_falls_back(self, memory_cache, fx_service):
        ai = FakeCompletionProvider(ProviderUnavailableError("fake-ai", "down"))
        resolver = make_resolver(memory_cache, fx_service, completion_provider=ai)

        results = resolver.resolve([self._request()])

        assert results[self.KEY].is_low_confidence

    def test_fallback_is_converted(self, memory_cache, fx_service):
        resolver = make_resolver(memory_cache, fx_service)

        results = resolver.resolve([self._request(purchase_price="100000", currency="USD")])

        assert results[self.KEY].price == Decimal("90000.0")

    def test_low_confidence_result_is_not_cached(self, memory_cache, fx_service):
        resolver = make_resolver(memory_cache, fx_service)

        resolver.resolve([self._request()])

        assert memory_cache.get(self.KEY) is None

    def test_cached_low_confidence_entry_is_not_trusted(self, memory_cache, fx_service, clock):
        memory_cache.put(PriceQuotation(self.KEY, Decimal("300000"), LOW_CONFIDENCE_SOURCE, clock()))
        ai = FakeCompletionProvider("410000")
        resolver = make_resolver(memory_cache, fx_service, completion_provider=ai)

        results = resolver.resolve([self._request()])

        assert results[self.KEY].price == Decimal("410000")
        assert len(ai.prompts) == 1

    def test_no_purchase_price_is_unpriced(self, memory_cache, fx_service):
        resolver = make_resolver(memory_cache, fx_service)

        assert resolver.resolve([self._request(purchase_price="0")]) == {}
        assert resolver.resolve([PriceRequest("re-1", AssetClass.REAL_ESTATE, "EUR")]) == {}


class TestEstimateParsing:
    """Tests for parse_estimate and the prompt text."""

    @pytest.mark.parametrize("text,expected", [
        ("425000", Decimal("425000")),
        ("Approximately 425,000 EUR", Decimal("425000")),
        ("EUR 1,250,000.50", Decimal("1250000.50")),
        ("0", None),
        ("no idea", None),
        ("", None),
    ])
    def test_parse_estimate(self, text, expected):
        assert parse_estimate(text) == expected

    def test_prompt_asks_for_number_only(self):
        prompt = build_estimation_prompt(EstimationContext(Decimal("1"), "EUR", {}), "USD")

        assert "in USD" in prompt
        assert prompt.endswith("Reply with ONLY a number, no explanation.")
