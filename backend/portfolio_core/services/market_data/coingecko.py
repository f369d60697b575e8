# backend/portfolio_core/services/market_data/coingecko.py
"""
CoinGecko provider: batched spot prices and daily market charts.

Endpoints:
    GET /simple/price?ids=a,b,c&vs_currencies=eur   -> {"a": {"eur": 1.0}, ...}
    GET /coins/{id}/market_chart?vs_currency=eur&days=365
                                                    -> {"prices": [[ms, price], ...]}

The public API shares one small rate limit across all callers, so spot
prices are only ever requested in batches: one call per target currency,
covering every coin of that currency.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from portfolio_core.services.exceptions import ProviderNoDataError
from portfolio_core.services.market_data.base import (
    CoinPriceProvider,
    HistoryProvider,
    PricePoint,
    PriceSeries,
)
from portfolio_core.services.market_data.http import JsonHttpClient, build_client

logger = logging.getLogger(__name__)


class CoinGeckoProvider(CoinPriceProvider, HistoryProvider):
    """Crypto and tokenized metal prices, in any currency CoinGecko supports."""

    # The shared limit makes quick retries counterproductive
    RETRY_MIN_WAIT = 2

    def __init__(
            self,
            base_url: str = "https://api.coingecko.com/api/v3",
            timeout: float = 10.0,
            http_client: httpx.Client | None = None,
            **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._http = JsonHttpClient(self.name, http_client or build_client(base_url, timeout))

    @property
    def name(self) -> str:
        return "coingecko"

    # =========================================================================
    # SPOT PRICES
    # =========================================================================

    def get_prices(self, coin_ids: list[str], currency: str) -> dict[str, Decimal]:
        unique_ids = list(dict.fromkeys(coin_ids))
        if not unique_ids:
            return {}
        return self._execute_with_retry(self._fetch_prices, unique_ids, currency.lower())

    def _fetch_prices(self, coin_ids: list[str], vs_currency: str) -> dict[str, Decimal]:
        payload = self._http.get(
            "/simple/price",
            params={"ids": ",".join(coin_ids), "vs_currencies": vs_currency},
        )
        if not isinstance(payload, dict):
            raise ProviderNoDataError(self.name, ",".join(coin_ids), "unexpected price payload")

        prices: dict[str, Decimal] = {}
        for coin_id in coin_ids:
            entry = payload.get(coin_id)
            value = _to_decimal(entry.get(vs_currency)) if isinstance(entry, dict) else None
            if value is not None and value > 0:
                prices[coin_id] = value

        logger.debug(f"CoinGecko priced {len(prices)}/{len(coin_ids)} coins in {vs_currency}")
        return prices

    # =========================================================================
    # DAILY HISTORY
    # =========================================================================

    def get_daily_series(
            self,
            identifier: str,
            currency: str,
            start_date: date,
            end_date: date,
    ) -> PriceSeries:
        days = max(1, (end_date - start_date).days)
        return self._execute_with_retry(
            self._fetch_market_chart,
            identifier,
            currency.upper(),
            days,
            start_date,
            end_date,
        )

    def _fetch_market_chart(
            self,
            coin_id: str,
            currency: str,
            days: int,
            start_date: date,
            end_date: date,
    ) -> PriceSeries:
        payload = self._http.get(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": currency.lower(), "days": days},
        )
        raw_points = payload.get("prices") if isinstance(payload, dict) else None

        # Several points can fall on one day (hourly granularity for short
        # ranges, plus the live point); the latest one wins
        by_day: dict[date, Decimal] = {}
        for item in raw_points or []:
            if not isinstance(item, (list, tuple)) or len(item) < 2:
                continue
            value = _to_decimal(item[1])
            if value is None or value <= 0:
                continue
            day = datetime.fromtimestamp(item[0] / 1000, tz=timezone.utc).date()
            if start_date <= day <= end_date:
                by_day[day] = value

        if not by_day:
            raise ProviderNoDataError(self.name, coin_id, "empty market chart")

        points = [PricePoint(date=day, value=by_day[day]) for day in sorted(by_day)]
        return PriceSeries(identifier=coin_id, currency=currency, source=self.name, points=points)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None
