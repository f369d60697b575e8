# backend/portfolio_core/services/market_data/exchangerate.py
"""
exchangerate-api.com FX rate provider.

Endpoint: GET /latest/{BASE} -> {"base": "USD", "rates": {"EUR": 0.92, ...}}
No API key is needed for the v4 endpoint.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from portfolio_core.services.exceptions import ProviderNoDataError
from portfolio_core.services.market_data.base import FXRateProvider
from portfolio_core.services.market_data.http import JsonHttpClient, build_client

logger = logging.getLogger(__name__)


class ExchangeRateApiProvider(FXRateProvider):

    def __init__(
            self,
            base_url: str = "https://api.exchangerate-api.com/v4",
            timeout: float = 10.0,
            http_client: httpx.Client | None = None,
            **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._http = JsonHttpClient(self.name, http_client or build_client(base_url, timeout))

    @property
    def name(self) -> str:
        return "exchangerate-api"

    def get_rates(self, base_currency: str) -> dict[str, Decimal]:
        return self._execute_with_retry(self._fetch_rates, base_currency.upper())

    def _fetch_rates(self, base_currency: str) -> dict[str, Decimal]:
        payload = self._http.get(f"/latest/{base_currency}")
        raw_rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise ProviderNoDataError(self.name, base_currency, "no rates in response")

        rates: dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                rate = Decimal(str(value))
            except InvalidOperation:
                continue
            if rate.is_finite() and rate > 0:
                rates[code.upper()] = rate

        logger.debug(f"Fetched {len(rates)} FX rates for base {base_currency}")
        return rates
