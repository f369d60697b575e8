# backend/portfolio_core/services/market_data/yahoo.py
"""
Yahoo Finance provider built on the yfinance library.

Serves two roles:
- last link of the exchange-traded quote chain (no API key needed)
- daily close history for equities, ETFs, funds and commodities

Yahoo reports each instrument's trading currency in the history metadata.
London listings are quoted in pence ("GBp"); those values are scaled to GBP.

Limitations:
- Undocumented rate limits
- Quotes may be delayed 15-20 minutes
"""

import logging
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import yfinance as yf

from portfolio_core.services.exceptions import (
    ProviderNoDataError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_core.services.market_data.base import (
    HistoryProvider,
    PricePoint,
    PriceSeries,
    Quote,
    QuoteProvider,
)

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

# Minor currency units Yahoo uses for some venues
MINOR_UNIT_CURRENCIES: dict[str, tuple[str, Decimal]] = {
    "GBp": ("GBP", Decimal("0.01")),
    "GBX": ("GBP", Decimal("0.01")),
    "ZAc": ("ZAR", Decimal("0.01")),
    "ILA": ("ILS", Decimal("0.01")),
}

QUOTE_LOOKBACK_PERIOD = "5d"


class YahooFinanceProvider(QuoteProvider, HistoryProvider):
    """
    Example:
        provider = YahooFinanceProvider()
        provider.get_quote("SAP.DE").currency  # "EUR"

        series = provider.get_daily_series("AAPL", "EUR", date(2024, 1, 1), date(2024, 12, 31))
        series.currency  # "USD" (native, conversion happens downstream)
    """

    def __init__(self, timeout: float = 10.0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # LATEST QUOTE
    # =========================================================================

    def get_quote(self, symbol: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, symbol.strip().upper())

    def _fetch_quote(self, symbol: str) -> Quote:
        with self._classify_errors(symbol):
            yf_ticker = yf.Ticker(symbol)
            df = yf_ticker.history(
                period=QUOTE_LOOKBACK_PERIOD,
                interval="1d",
                auto_adjust=False,
                timeout=self._timeout,
            )
            currency, scale = self._native_currency(yf_ticker)

        points = self._dataframe_to_points(df, scale)
        if not points:
            raise ProviderNoDataError(self.name, symbol, "no recent close")

        return Quote(symbol=symbol, price=points[-1].value, currency=currency, source=self.name)

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
        # Yahoo always answers in the listing currency; `currency` is ignored
        return self._execute_with_retry(
            self._fetch_daily_series,
            identifier.strip().upper(),
            start_date,
            end_date,
        )

    def _fetch_daily_series(self, symbol: str, start_date: date, end_date: date) -> PriceSeries:
        logger.debug(f"Fetching daily closes for {symbol}: {start_date} to {end_date}")

        with self._classify_errors(symbol):
            yf_ticker = yf.Ticker(symbol)
            # Yahoo's end date is exclusive
            df = yf_ticker.history(
                start=start_date.isoformat(),
                end=(end_date + timedelta(days=1)).isoformat(),
                interval="1d",
                auto_adjust=False,
                timeout=self._timeout,
            )
            currency, scale = self._native_currency(yf_ticker)

        points = self._dataframe_to_points(df, scale)
        if not points:
            raise ProviderNoDataError(self.name, symbol, f"no closes between {start_date} and {end_date}")

        logger.debug(f"Fetched {len(points)} closes for {symbol} in {currency}")
        return PriceSeries(identifier=symbol, currency=currency, source=self.name, points=points)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _classify_errors(self, symbol: str) -> "_YahooErrorClassifier":
        return _YahooErrorClassifier(self.name, symbol)

    @staticmethod
    def _native_currency(yf_ticker: Any) -> tuple[str, Decimal]:
        """Listing currency and the factor converting quoted values into it."""
        metadata = getattr(yf_ticker, "history_metadata", None)
        raw = metadata.get("currency") if isinstance(metadata, dict) else None
        if not raw:
            return DEFAULT_CURRENCY, Decimal("1")

        if raw in MINOR_UNIT_CURRENCIES:
            return MINOR_UNIT_CURRENCIES[raw]
        return raw.upper(), Decimal("1")

    def _dataframe_to_points(self, df: Any, scale: Decimal) -> list[PricePoint]:
        """Ascending, one point per day, rows without a positive close dropped."""
        if df is None or df.empty or "Close" not in df.columns:
            return []

        by_day: dict[date, Decimal] = {}
        for idx, close in df["Close"].items():
            value = self._to_decimal(close)
            if value is None or value <= 0:
                continue
            day = idx.date() if hasattr(idx, "date") else idx
            by_day[day] = value * scale

        return [PricePoint(date=day, value=by_day[day]) for day in sorted(by_day)]

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a pandas cell to Decimal, treating NaN as missing."""
        if value is None:
            return None
        try:
            as_float = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(as_float) or math.isinf(as_float):
            return None
        return Decimal(str(as_float))


class _YahooErrorClassifier:
    """
    Context manager mapping yfinance's untyped exceptions onto the taxonomy
    by message content.
    """

    def __init__(self, provider: str, symbol: str) -> None:
        self._provider = provider
        self._symbol = symbol

    def __enter__(self) -> "_YahooErrorClassifier":
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        if exc_val is None or not isinstance(exc_val, Exception):
            return False

        error_str = str(exc_val).lower()

        if "rate limit" in error_str or "too many requests" in error_str:
            raise RateLimitError(provider=self._provider) from exc_val

        if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
            raise ProviderNoDataError(self._provider, self._symbol, str(exc_val)) from exc_val

        logger.error(f"Yahoo Finance error for {self._symbol}: {exc_val}")
        raise ProviderUnavailableError(provider=self._provider, reason=str(exc_val)) from exc_val
