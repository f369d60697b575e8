# backend/portfolio_core/services/pricing/resolver.py
"""
Price resolution for a batch of heterogeneous assets.

Resolution order per request:
    1. cache lookup (skipped on force_refresh; a cached purchase price
       fallback for real estate counts as a miss)
    2. class-specific resolution:
       equity / etf / fund / commodity
           ISIN -> symbol (etf, fund), then the exchange-traded QuoteChain
       crypto / precious metal
           deferred; one coin market call per target currency for the
           whole batch
       real estate
           completion provider estimate, else purchase price (low confidence)
       fiat / mineral / private equity / other
           never market-priced
    3. high-confidence results are written back to the cache

Failure policy: nothing raised by a provider escapes `resolve`. An asset
whose resolution fails is absent from the result map and the caller values
it at cost basis.

Usage:
    resolver = PriceResolver(cache, fx_service, quote_chain=QuoteChain([...]), ...)
    prices = resolver.resolve([PriceRequest("AAPL", AssetClass.EQUITY, "EUR")])
    prices[QuoteKey.build("AAPL", AssetClass.EQUITY, "EUR")].price
"""

import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from portfolio_core.models import AssetClass, COIN_PRICED_CLASSES, EXCHANGE_TRADED_CLASSES
from portfolio_core.services.constants import LOW_CONFIDENCE_SOURCE
from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    FXRateError,
    ResolutionExhaustedError,
)
from portfolio_core.services.fx_rate_service import FXBatch, FXRateService
from portfolio_core.services.market_data.base import (
    CoinPriceProvider,
    CompletionProvider,
    SymbolSearchProvider,
)
from portfolio_core.services.market_data.symbols import (
    coin_id_for,
    looks_like_isin,
    metal_coin_id_for,
)
from portfolio_core.services.price_cache import CacheStore, PriceQuotation, QuoteKey
from portfolio_core.services.pricing.chains import PROVIDER_FAILURES, QuoteChain
from portfolio_core.services.pricing.types import EstimationContext, PriceRequest, PriceResult

logger = logging.getLogger(__name__)

ISIN_RESOLVED_CLASSES = frozenset({AssetClass.ETF, AssetClass.FUND})

ESTIMATE_MAX_TOKENS = 50

_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?")


@dataclass(frozen=True)
class _PendingCoin:
    key: QuoteKey
    coin_id: str


def build_estimation_prompt(context: EstimationContext, currency: str) -> str:
    description = json.dumps(context.description, default=str, sort_keys=True)
    return (
        f"Estimate the current market value in {currency} of a property with: {description}. "
        f"Purchase price was {context.purchase_price} {context.currency}. "
        f"Reply with ONLY a number, no explanation."
    )


def parse_estimate(text: str) -> Decimal | None:
    """
    Leading numeric value of a free-form completion, or None.

    >>> parse_estimate("Approximately 425,000 EUR")
    Decimal('425000')
    """
    match = _NUMBER.search(text)
    if match is None:
        return None
    try:
        value = Decimal(match.group(0).replace(",", ""))
    except InvalidOperation:
        return None
    return value if value > 0 else None


class PriceResolver:
    """
    Cache-first, provider-chain price resolution.

    Args:
        cache: Quotation store
        fx_service: Source of per-batch FX conversions
        quote_chain: Providers for exchange-traded classes, in fallback order
        symbol_search: ISIN resolver for ETFs and funds (optional)
        coin_provider: Batched crypto / metal token prices (optional)
        completion_provider: Real estate estimates (optional)
    """

    def __init__(
            self,
            cache: CacheStore,
            fx_service: FXRateService,
            quote_chain: QuoteChain,
            symbol_search: SymbolSearchProvider | None = None,
            coin_provider: CoinPriceProvider | None = None,
            completion_provider: CompletionProvider | None = None,
    ) -> None:
        self._cache = cache
        self._fx_service = fx_service
        self._quote_chain = quote_chain
        self._symbol_search = symbol_search
        self._coin_provider = coin_provider
        self._completion_provider = completion_provider

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def resolve(
            self,
            requests: list[PriceRequest],
            fx_batch: FXBatch | None = None,
    ) -> dict[QuoteKey, PriceResult]:
        """
        Resolve a batch. Identical keys are resolved once; a duplicate asking
        for force_refresh makes the shared lookup bypass the cache.

        Args:
            requests: Assets to price
            fx_batch: Shared FX batch of the calling valuation cycle (a new
                one is opened when omitted)
        """
        unique = self._deduplicate(requests)
        fx_batch = fx_batch or self._fx_service.begin_batch()

        results: dict[QuoteKey, PriceResult] = {}
        pending_coins: list[_PendingCoin] = []
        cache_hits = 0

        for key, request in unique.items():
            if not request.force_refresh:
                cached = self._cache.get(key)
                if cached is not None and self._is_trusted(cached):
                    results[key] = PriceResult(price=cached.price, source=cached.source)
                    cache_hits += 1
                    continue

            if key.asset_class in EXCHANGE_TRADED_CLASSES:
                result = self._resolve_security(request, key, fx_batch)
            elif key.asset_class in COIN_PRICED_CLASSES:
                pending = self._pending_coin(key)
                if pending is not None:
                    pending_coins.append(pending)
                continue
            elif key.asset_class == AssetClass.REAL_ESTATE:
                result = self._resolve_real_estate(request, key, fx_batch)
            else:
                logger.debug(f"{key.asset_class.value} '{key.identifier}' is not market-priced")
                continue

            if result is not None:
                self._store(key, result)
                results[key] = result

        for key, result in self._resolve_coins(pending_coins).items():
            self._store(key, result)
            results[key] = result

        logger.info(
            f"Resolved {len(results)}/{len(unique)} price requests "
            f"({cache_hits} from cache)"
        )
        return results

    # =========================================================================
    # EXCHANGE-TRADED
    # =========================================================================

    def _resolve_security(self, request: PriceRequest, key: QuoteKey, fx_batch: FXBatch) -> PriceResult | None:
        symbol = self._trading_symbol(request.identifier, key.asset_class)
        try:
            return self._quote_chain.quote(symbol, key.currency, fx_batch)
        except ResolutionExhaustedError as e:
            logger.warning(e.message)
            return None

    def _trading_symbol(self, identifier: str, asset_class: AssetClass) -> str:
        if (
                asset_class not in ISIN_RESOLVED_CLASSES
                or self._symbol_search is None
                or not looks_like_isin(identifier)
        ):
            return identifier

        try:
            return self._symbol_search.resolve_isin(identifier)
        except ConfigurationMissingError:
            return identifier
        except PROVIDER_FAILURES as e:
            logger.warning(f"ISIN lookup failed for {identifier}, quoting it as-is: {e}")
            return identifier

    # =========================================================================
    # CRYPTO AND PRECIOUS METALS
    # =========================================================================

    @staticmethod
    def _pending_coin(key: QuoteKey) -> _PendingCoin | None:
        if key.asset_class == AssetClass.PRECIOUS_METAL:
            coin_id = metal_coin_id_for(key.identifier)
            if coin_id is None:
                logger.warning(f"No market proxy for metal '{key.identifier}'")
                return None
            return _PendingCoin(key=key, coin_id=coin_id)
        return _PendingCoin(key=key, coin_id=coin_id_for(key.identifier))

    def _resolve_coins(self, pending: list[_PendingCoin]) -> dict[QuoteKey, PriceResult]:
        """One provider call per target currency, covering every coin of it."""
        if not pending:
            return {}
        if self._coin_provider is None:
            logger.warning(f"No coin price provider configured; {len(pending)} coin requests unresolved")
            return {}

        by_currency: dict[str, list[_PendingCoin]] = {}
        for item in pending:
            by_currency.setdefault(item.key.currency, []).append(item)

        results: dict[QuoteKey, PriceResult] = {}
        for currency, items in by_currency.items():
            coin_ids = list(dict.fromkeys(item.coin_id for item in items))
            try:
                prices = self._coin_provider.get_prices(coin_ids, currency)
            except PROVIDER_FAILURES as e:
                logger.warning(f"Coin prices in {currency} unavailable for {len(coin_ids)} coins: {e}")
                continue

            for item in items:
                price = prices.get(item.coin_id)
                if price is not None and price > 0:
                    results[item.key] = PriceResult(price=price, source=self._coin_provider.name)
                else:
                    logger.warning(f"No {currency} price for coin '{item.coin_id}'")

        return results

    # =========================================================================
    # REAL ESTATE
    # =========================================================================

    def _resolve_real_estate(self, request: PriceRequest, key: QuoteKey, fx_batch: FXBatch) -> PriceResult | None:
        context = request.estimation
        if context is None or context.purchase_price <= 0:
            logger.debug(f"No purchase price for {key.identifier}; real estate left unpriced")
            return None

        estimate = self._estimate(context, key)
        if estimate is not None:
            return PriceResult(price=estimate, source=self._completion_provider.name)

        try:
            fallback = fx_batch.convert(context.purchase_price, context.currency, key.currency)
        except FXRateError as e:
            logger.warning(f"Cannot express purchase price of {key.identifier} in {key.currency}: {e}")
            return None

        logger.info(f"Using purchase price for {key.identifier} (low confidence)")
        return PriceResult(price=fallback, source=LOW_CONFIDENCE_SOURCE)

    def _estimate(self, context: EstimationContext, key: QuoteKey) -> Decimal | None:
        if self._completion_provider is None:
            return None

        prompt = build_estimation_prompt(context, key.currency)
        try:
            text = self._completion_provider.complete(prompt, max_tokens=ESTIMATE_MAX_TOKENS)
        except ConfigurationMissingError:
            return None
        except PROVIDER_FAILURES as e:
            logger.warning(f"Value estimate failed for {key.identifier}: {e}")
            return None

        estimate = parse_estimate(text)
        if estimate is None:
            logger.warning(f"Unparseable value estimate for {key.identifier}: {text[:80]!r}")
        return estimate

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _deduplicate(requests: list[PriceRequest]) -> dict[QuoteKey, PriceRequest]:
        unique: dict[QuoteKey, PriceRequest] = {}
        for request in requests:
            key = request.key
            existing = unique.get(key)
            if existing is None:
                unique[key] = request
            elif request.force_refresh and not existing.force_refresh:
                unique[key] = PriceRequest(
                    identifier=existing.identifier,
                    asset_class=existing.asset_class,
                    currency=existing.currency,
                    force_refresh=True,
                    estimation=existing.estimation or request.estimation,
                )
        return unique

    @staticmethod
    def _is_trusted(quotation: PriceQuotation) -> bool:
        return not (
            quotation.key.asset_class == AssetClass.REAL_ESTATE
            and quotation.is_low_confidence
        )

    def _store(self, key: QuoteKey, result: PriceResult) -> None:
        if result.is_low_confidence:
            return
        self._cache.put(
            PriceQuotation(
                key=key,
                price=result.price,
                source=result.source,
                fetched_at=self._cache.now(),
            )
        )
