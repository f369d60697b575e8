# backend/portfolio_core/services/market_data/finnhub.py
"""
Finnhub provider: latest quote and ISIN -> symbol search.

Endpoints:
    GET /quote?symbol=...&token=...   -> {"c": current, "pc": prev close, ...}
    GET /search?q=...&token=...       -> {"result": [{"symbol": ..., ...}]}

Unknown symbols are answered with HTTP 200 and `c == 0`, which is mapped to
ProviderNoDataError. Quotes are in USD.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    ProviderNoDataError,
)
from portfolio_core.services.market_data.base import (
    Quote,
    QuoteProvider,
    SymbolSearchProvider,
)
from portfolio_core.services.market_data.http import JsonHttpClient, build_client

logger = logging.getLogger(__name__)


class FinnhubProvider(QuoteProvider, SymbolSearchProvider):
    """
    Second link of the exchange-traded chain, and the ISIN resolver
    for ETFs and funds.
    """

    NATIVE_CURRENCY = "USD"

    def __init__(
            self,
            api_key: str | None,
            base_url: str = "https://finnhub.io/api/v1",
            timeout: float = 10.0,
            http_client: httpx.Client | None = None,
            **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._http = JsonHttpClient(self.name, http_client or build_client(base_url, timeout))

    @property
    def name(self) -> str:
        return "finnhub"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def get_quote(self, symbol: str) -> Quote:
        self._require_key()
        return self._execute_with_retry(self._fetch_quote, symbol.strip())

    def _fetch_quote(self, symbol: str) -> Quote:
        payload = self._http.get("/quote", params={"symbol": symbol, "token": self._api_key})
        if not isinstance(payload, dict):
            raise ProviderNoDataError(self.name, symbol, "unexpected quote payload")

        try:
            price = Decimal(str(payload.get("c")))
        except InvalidOperation:
            raise ProviderNoDataError(self.name, symbol, "missing current price")

        if not price.is_finite() or price <= 0:
            raise ProviderNoDataError(self.name, symbol)

        return Quote(symbol=symbol, price=price, currency=self.NATIVE_CURRENCY, source=self.name)

    # =========================================================================
    # SYMBOL SEARCH
    # =========================================================================

    def resolve_isin(self, isin: str) -> str:
        """
        Pick a trading symbol for `isin`.

        Search results for European ISINs list every venue ("VWCE.DE",
        "VWCE.MI", ...). A symbol without an exchange suffix is the primary
        US listing, which is what the quote endpoints understand best, so it
        wins over the first hit.
        """
        self._require_key()
        return self._execute_with_retry(self._search, isin.strip().upper())

    def _search(self, isin: str) -> str:
        payload = self._http.get("/search", params={"q": isin, "token": self._api_key})
        results = payload.get("result") if isinstance(payload, dict) else None

        symbols = [
            item["symbol"]
            for item in results or []
            if isinstance(item, dict) and item.get("symbol")
        ]
        if not symbols:
            raise ProviderNoDataError(self.name, isin, "symbol search returned no match")

        chosen = next((s for s in symbols if "." not in s), symbols[0])
        logger.debug(f"Resolved ISIN {isin} to {chosen} ({len(symbols)} candidates)")
        return chosen

    def _require_key(self) -> None:
        if not self._api_key:
            raise ConfigurationMissingError(self.name, "FINNHUB_API_KEY")
