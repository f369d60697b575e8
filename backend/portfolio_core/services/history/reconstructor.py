# backend/portfolio_core/services/history/reconstructor.py
"""
Daily portfolio value over a trailing window, rebuilt from provider series.

Per holding:
    constant_value set          -> that value on every day (converted into base)
    equity / etf / fund / commodity
                                -> historical quote provider closes, native currency
    crypto / precious metal     -> coin market chart, requested in base currency
    anything else               -> no source, left out with a warning

Each series is forward-filled onto the calendar window, scaled by quantity
and converted into the base currency. The portfolio series is the day-by-day
sum, starting at the first day whose sum is positive, rounded to cents.

Holdings are fetched concurrently through a thread pool. Series are summed
in input order, so the result does not depend on completion order. A
provider failure drops that holding only; the rest of the history stands.

Portfolios larger than `max_assets` are not reconstructed at all
(skipped=True) to bound outbound provider calls.

Usage:
    reconstructor = HistoryReconstructor(yahoo, coingecko, fx_service)
    history = reconstructor.reconstruct(history_assets)
    history.values  # [10412.5, 10398.11, ...]
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from decimal import Decimal

import pandas as pd

from portfolio_core.models import (
    AssetClass,
    COIN_PRICED_CLASSES,
    EXCHANGE_TRADED_CLASSES,
    NON_MARKET_CLASSES,
)
from portfolio_core.schemas.assets import Asset
from portfolio_core.services.constants import HISTORY_LOOKBACK_DAYS, HISTORY_MAX_ASSETS
from portfolio_core.services.fx_rate_service import FXBatch, FXRateService
from portfolio_core.services.history.forward_fill import (
    calendar_window,
    constant_series,
    forward_fill,
)
from portfolio_core.services.history.types import HistoryAsset, HistoryPoint, PortfolioHistory
from portfolio_core.services.market_data.base import HistoryProvider
from portfolio_core.services.market_data.symbols import coin_id_for, metal_coin_id_for
from portfolio_core.services.pricing.chains import PROVIDER_FAILURES
from portfolio_core.services.valuation.types import PortfolioValuation
from portfolio_core.utils.context import run_in_context

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class _SkippedAsset(Exception):
    """Internal: a holding that contributes no series."""


class HistoryReconstructor:
    """
    Args:
        quote_history: Daily closes for exchange-traded classes (optional)
        coin_history: Daily prices for crypto and metal tokens (optional)
        fx_service: Currency normalizer; its base currency is the series currency
        max_assets: Larger portfolios are skipped
        lookback_days: Window is [end - lookback_days, end]
        max_workers: Thread pool size for provider calls
    """

    def __init__(
            self,
            quote_history: HistoryProvider | None,
            coin_history: HistoryProvider | None,
            fx_service: FXRateService,
            max_assets: int = HISTORY_MAX_ASSETS,
            lookback_days: int = HISTORY_LOOKBACK_DAYS,
            max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._quote_history = quote_history
        self._coin_history = coin_history
        self._fx_service = fx_service
        self._max_assets = max_assets
        self._lookback_days = lookback_days
        self._max_workers = max(1, max_workers)

    @property
    def max_assets(self) -> int:
        return self._max_assets

    def reconstruct(
            self,
            assets: list[HistoryAsset],
            end_date: date | None = None,
            base_currency: str | None = None,
    ) -> PortfolioHistory:
        """
        Args:
            assets: Holdings to include
            end_date: Last day of the window (today, UTC, by default)
            base_currency: Series currency (the normalizer's base by default)
        """
        base_currency = (base_currency or self._fx_service.base_currency).upper()

        if len(assets) > self._max_assets:
            message = f"History skipped: {len(assets)} assets exceeds the limit of {self._max_assets}"
            logger.info(message)
            return PortfolioHistory(series=(), currency=base_currency, skipped=True, warnings=(message,))

        if not assets:
            return PortfolioHistory(series=(), currency=base_currency)

        end = end_date or datetime.now(timezone.utc).date()
        calendar = calendar_window(end, self._lookback_days)
        fx_batch = self._fx_service.begin_batch(base_currency)

        workers = min(self._max_workers, len(assets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="history") as pool:
            futures = [
                pool.submit(run_in_context(self._asset_series), asset, calendar, fx_batch)
                for asset in assets
            ]
            outcomes = [future.result() for future in futures]

        series_list: list[pd.Series] = []
        warnings: list[str] = []
        for outcome in outcomes:
            if isinstance(outcome, str):
                warnings.append(outcome)
            else:
                series_list.append(outcome)

        points = self._sum_series(series_list, calendar)
        logger.info(
            f"Reconstructed {len(points)} days from {len(series_list)}/{len(assets)} assets "
            f"in {base_currency}"
        )
        return PortfolioHistory(
            series=tuple(points),
            currency=base_currency,
            assets_included=len(series_list),
            warnings=tuple(warnings),
        )

    # =========================================================================
    # PER-ASSET SERIES
    # =========================================================================

    def _asset_series(self, asset: HistoryAsset, calendar: pd.DatetimeIndex, fx_batch: FXBatch) -> pd.Series | str:
        """Value series in the base currency, or a warning message when the asset is left out."""
        try:
            if asset.constant_value is not None and asset.constant_value >= 0:
                value = fx_batch.convert(asset.constant_value, asset.currency)
                return constant_series(float(value), calendar)

            quantity = float(max(Decimal("0"), asset.quantity))
            prices, native_currency = self._fetch_prices(asset, calendar, fx_batch.base_currency)
            rate = float(fx_batch.rate(native_currency))
            return prices * quantity * rate

        except _SkippedAsset as e:
            logger.warning(f"History for {asset.identifier} skipped: {e}")
            return f"{asset.identifier}: {e}"
        except PROVIDER_FAILURES as e:
            logger.warning(f"History for {asset.identifier} unavailable: {e}")
            return f"{asset.identifier}: history unavailable ({e})"

    def _fetch_prices(
            self,
            asset: HistoryAsset,
            calendar: pd.DatetimeIndex,
            base_currency: str,
    ) -> tuple[pd.Series, str]:
        start = calendar[0].date()
        end = calendar[-1].date()

        if asset.asset_class in EXCHANGE_TRADED_CLASSES:
            provider = self._quote_history
            identifier = asset.identifier
        elif asset.asset_class in COIN_PRICED_CLASSES:
            provider = self._coin_history
            identifier = self._coin_id(asset)
        else:
            raise _SkippedAsset(f"no daily prices for {asset.asset_class.value}")

        if provider is None:
            raise _SkippedAsset(f"no history provider for {asset.asset_class.value}")

        series = provider.get_daily_series(identifier, base_currency, start, end)
        filled = forward_fill(series.points, calendar)
        if filled.empty:
            raise _SkippedAsset("no observations inside the window")
        return filled, series.currency

    @staticmethod
    def _coin_id(asset: HistoryAsset) -> str:
        if asset.asset_class == AssetClass.PRECIOUS_METAL:
            coin_id = metal_coin_id_for(asset.identifier)
            if coin_id is None:
                raise _SkippedAsset(f"no market proxy for metal '{asset.identifier}'")
            return coin_id
        return coin_id_for(asset.identifier)

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    @staticmethod
    def _sum_series(series_list: list[pd.Series], calendar: pd.DatetimeIndex) -> list[HistoryPoint]:
        if not series_list:
            return []

        frame = pd.concat([s.reindex(calendar) for s in series_list], axis=1)
        totals = frame.sum(axis=1, skipna=True)

        positive = totals[totals > 0]
        if positive.empty:
            return []
        totals = totals.loc[positive.index[0]:]

        return [
            HistoryPoint(date=day.date(), value=round(float(value), 2))
            for day, value in totals.items()
        ]


def history_assets_from_valuation(assets: list[Asset], valuation: PortfolioValuation) -> list[HistoryAsset]:
    """
    History inputs for a valued portfolio.

    Classes without daily prices carry their current value as the constant;
    every other holding is looked up by its history identifier.
    """
    by_id = {v.asset_id: v for v in valuation.assets}
    history_assets: list[HistoryAsset] = []

    for asset in assets:
        constant_value = None
        if asset.asset_class in NON_MARKET_CLASSES:
            current = by_id.get(asset.id)
            constant_value = current.current_value if current is not None else None

        history_assets.append(
            HistoryAsset(
                identifier=asset.history_identifier(),
                asset_class=asset.asset_class,
                quantity=asset.quantity,
                currency=valuation.base_currency,
                constant_value=constant_value,
            )
        )
    return history_assets
