# backend/portfolio_core/services/market_data/tiingo.py
"""
Tiingo IEX quote provider (first link of the exchange-traded chain).

Endpoint: GET /iex/{symbol}?token=...
The IEX endpoint answers with a list holding one quote object. The price is
the first positive value among `tngoLast`, `last` and `prevClose`. Quotes are
in USD.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    ProviderNoDataError,
)
from portfolio_core.services.market_data.base import Quote, QuoteProvider
from portfolio_core.services.market_data.http import JsonHttpClient, build_client

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("tngoLast", "last", "prevClose")


class TiingoProvider(QuoteProvider):
    """
    Example:
        provider = TiingoProvider(api_key="...")
        provider.get_quote("AAPL")  # Quote(symbol="AAPL", price=Decimal("189.2"), currency="USD", ...)
    """

    NATIVE_CURRENCY = "USD"

    def __init__(
            self,
            api_key: str | None,
            base_url: str = "https://api.tiingo.com",
            timeout: float = 10.0,
            http_client: httpx.Client | None = None,
            **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._http = JsonHttpClient(self.name, http_client or build_client(base_url, timeout))

    @property
    def name(self) -> str:
        return "tiingo"

    def get_quote(self, symbol: str) -> Quote:
        if not self._api_key:
            raise ConfigurationMissingError(self.name, "TIINGO_API_KEY")
        return self._execute_with_retry(self._fetch_quote, symbol.strip())

    def _fetch_quote(self, symbol: str) -> Quote:
        payload = self._http.get(f"/iex/{symbol}", params={"token": self._api_key})

        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict):
            raise ProviderNoDataError(self.name, symbol, "empty IEX response")

        price = _first_positive(payload, PRICE_FIELDS)
        if price is None:
            raise ProviderNoDataError(self.name, symbol)

        logger.debug(f"Tiingo quote for {symbol}: {price}")
        return Quote(symbol=symbol, price=price, currency=self.NATIVE_CURRENCY, source=self.name)


def _first_positive(payload: dict[str, Any], fields: tuple[str, ...]) -> Decimal | None:
    # Fallback order is by field presence; a present zero is not skipped over
    for field_name in fields:
        value = payload.get(field_name)
        if value is None or isinstance(value, bool):
            continue
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            return None
        return price if price.is_finite() and price > 0 else None
    return None
