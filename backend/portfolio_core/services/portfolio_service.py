# backend/portfolio_core/services/portfolio_service.py
"""
Portfolio Service - single entry point for pricing, valuation, history
and analysis of an asset snapshot.

Control flow:
    assets -> PriceResolver -> price map -> ValuationAggregator -> valuation
           -> HistoryReconstructor -> daily series -> risk analytics

Design Principles:
- Dependency Injection: resolver, reconstructor and FX service come in
  through the constructor (see portfolio_core/dependencies.py)
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Never-fail: provider trouble degrades values, it never aborts a request

Usage:
    service = PortfolioService(resolver, fx_service, reconstructor)

    valuation = service.get_valuation(assets, base_currency="EUR")
    analysis = service.analyze(assets, include_history=True)
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from portfolio_core.models import AssetClass
from portfolio_core.schemas.assets import Asset
from portfolio_core.services.analytics import (
    DiversificationInsight,
    RiskAlert,
    RiskLevel,
    SeriesRisk,
    analyze_series,
    build_diversification_insights,
    build_risk_alerts,
    concentration,
    estimated_risk_level,
)
from portfolio_core.services.constants import DEFAULT_RISK_FREE_RATE
from portfolio_core.services.exceptions import ValidationError
from portfolio_core.services.fx_rate_service import FXRateService
from portfolio_core.services.history import (
    HistoryAsset,
    HistoryReconstructor,
    PortfolioHistory,
    history_assets_from_valuation,
)
from portfolio_core.services.price_cache import Clock, QuoteKey, utc_now
from portfolio_core.services.pricing import (
    EstimationContext,
    PriceRequest,
    PriceResolver,
    PriceResult,
)
from portfolio_core.services.valuation import PortfolioValuation, ValuationAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioAnalysis:
    """Valuation plus allocation risk and, when history was built, series risk."""

    valuation: PortfolioValuation
    concentration_pct: float
    risk_level: RiskLevel
    alerts: list[RiskAlert]
    insights: list[DiversificationInsight]
    series_risk: SeriesRisk | None = None
    history: PortfolioHistory | None = None
    warnings: list[str] = field(default_factory=list)


class PortfolioService:
    """
    Attributes:
        _resolver: Cache-first price resolution
        _fx_service: Currency normalizer
        _reconstructor: History reconstruction (optional)
        _aggregator: Pure valuation aggregation
        _clock: Valuation instant source
    """

    def __init__(
            self,
            resolver: PriceResolver,
            fx_service: FXRateService,
            reconstructor: HistoryReconstructor | None = None,
            risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
            clock: Clock = utc_now,
    ) -> None:
        self._resolver = resolver
        self._fx_service = fx_service
        self._reconstructor = reconstructor
        self._risk_free_rate = risk_free_rate
        self._clock = clock
        self._aggregator = ValuationAggregator()

    @property
    def base_currency(self) -> str:
        return self._fx_service.base_currency

    # =========================================================================
    # PRICES
    # =========================================================================

    def resolve_prices(self, requests: list[PriceRequest]) -> dict[QuoteKey, PriceResult]:
        return self._resolver.resolve(requests)

    @staticmethod
    def price_requests_for(assets: list[Asset], currency: str, force_refresh: bool = False) -> list[PriceRequest]:
        """
        One request per market-priced asset, in `currency`.

        Fiat is valued by interest accrual and never requested. Real estate
        carries its attributes so an estimate can be asked for.
        """
        requests: list[PriceRequest] = []
        for asset in assets:
            if asset.asset_class == AssetClass.FIAT:
                continue

            estimation = None
            if asset.asset_class == AssetClass.REAL_ESTATE:
                description = asset.attributes.model_dump(exclude={"asset_class", "notes"}, exclude_none=True)
                description["name"] = asset.name
                estimation = EstimationContext(
                    purchase_price=asset.purchase_price,
                    currency=asset.currency,
                    description=description,
                )

            requests.append(PriceRequest(
                identifier=asset.price_identifier(),
                asset_class=asset.asset_class,
                currency=currency,
                force_refresh=force_refresh,
                estimation=estimation,
            ))
        return requests

    # =========================================================================
    # VALUATION
    # =========================================================================

    def get_valuation(
            self,
            assets: list[Asset],
            base_currency: str | None = None,
            force_refresh: bool = False,
    ) -> PortfolioValuation:
        """
        Price every asset and aggregate the portfolio.

        Unpriced assets are valued at cost; the valuation lists them in
        its warnings.
        """
        currency = (base_currency or self.base_currency).upper()
        fx_batch = self._fx_service.begin_batch(currency)

        prices = self._resolver.resolve(
            self.price_requests_for(assets, currency, force_refresh),
            fx_batch=fx_batch,
        )
        fx_rates = fx_batch.snapshot({asset.currency for asset in assets})

        valuation = self._aggregator.aggregate(
            assets=assets,
            prices=prices,
            fx_rates=fx_rates,
            base_currency=currency,
            as_of=self._clock(),
        )
        logger.info(
            f"Valued {len(assets)} assets: total={valuation.total_value:.2f} {currency}, "
            f"{valuation.unpriced_count} at cost basis"
        )
        return valuation

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get_history(
            self,
            assets: list[HistoryAsset],
            end_date: date | None = None,
            base_currency: str | None = None,
    ) -> PortfolioHistory:
        """
        Daily portfolio value series.

        Raises:
            ValidationError: More assets than the reconstructor accepts
        """
        reconstructor = self._require_reconstructor()
        if len(assets) > reconstructor.max_assets:
            raise ValidationError(
                f"At most {reconstructor.max_assets} assets are supported for history, got {len(assets)}",
                field="assets",
            )
        return reconstructor.reconstruct(assets, end_date=end_date, base_currency=base_currency)

    def _require_reconstructor(self) -> HistoryReconstructor:
        if self._reconstructor is None:
            raise ValidationError("History reconstruction is not configured")
        return self._reconstructor

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    def analyze(
            self,
            assets: list[Asset],
            base_currency: str | None = None,
            include_history: bool = True,
            end_date: date | None = None,
    ) -> PortfolioAnalysis:
        """
        Valuation, allocation risk and, optionally, history-based risk.

        Portfolios above the history limit get a skipped history and NaN
        series risk rather than an error.
        """
        valuation = self.get_valuation(assets, base_currency)
        rollups = list(valuation.by_class)
        warnings = list(valuation.warnings)

        history = None
        series_risk = None
        if include_history and self._reconstructor is not None:
            history = self._reconstructor.reconstruct(
                history_assets_from_valuation(assets, valuation),
                end_date=end_date,
                base_currency=valuation.base_currency,
            )
            warnings.extend(history.warnings)
            series_risk = analyze_series(history.values, self._risk_free_rate)

        return PortfolioAnalysis(
            valuation=valuation,
            concentration_pct=concentration(rollups, valuation.total_value),
            risk_level=estimated_risk_level(rollups, valuation.total_value),
            alerts=build_risk_alerts(rollups, valuation.total_value),
            insights=build_diversification_insights(rollups, valuation.total_value, len(assets)),
            series_risk=series_risk,
            history=history,
            warnings=warnings,
        )
