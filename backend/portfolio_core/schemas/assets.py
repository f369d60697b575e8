# backend/portfolio_core/schemas/assets.py
"""
Asset snapshot schemas.

Asset records are owned by an external store; this service only ever reads
an immutable snapshot of them, so every model here is frozen.

The class-specific attribute set is a discriminated union keyed by
`asset_class`. Clients send `asset_class` once at the top level; the
discriminator is copied into `attributes` before validation, so the
attribute variant always agrees with the asset's class.

Validation layers:
- Field constraints: non-negative quantity and price, ISO currency code
- Field validators: normalization (uppercase, trim, UTC timestamps)
- Identifier helpers: which attribute identifies the asset to each provider
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portfolio_core.models import AssetClass, EXCHANGE_TRADED_CLASSES


# =============================================================================
# ATTRIBUTE VARIANTS
# =============================================================================

class _Attributes(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    notes: str | None = None


class SecurityAttributes(_Attributes):
    """Listed equities, ETFs and funds."""

    asset_class: Literal["equity", "etf", "fund"]
    ticker: str | None = Field(default=None, max_length=20, examples=["AAPL", "VWCE.DE"])
    isin: str | None = Field(default=None, max_length=12, examples=["IE00BK5BQT80"])
    exchange: str | None = Field(default=None, max_length=20, examples=["XETRA"])

    @field_validator("ticker", "isin", "exchange")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().upper() or None


class CommodityAttributes(_Attributes):
    asset_class: Literal["commodity"]
    ticker: str | None = Field(default=None, max_length=20, examples=["GC=F"])
    unit: str | None = None
    storage_location: str | None = None

    @field_validator("ticker")
    @classmethod
    def normalize_ticker(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().upper() or None


class CryptoAttributes(_Attributes):
    asset_class: Literal["crypto"]
    symbol: str | None = Field(default=None, examples=["BTC"])
    coin_id: str | None = Field(default=None, examples=["bitcoin"], description="CoinGecko coin id")
    staking_enabled: bool = False
    staking_type: Literal["flex", "fixed"] | None = None
    staking_apy: Decimal | None = Field(default=None, ge=0)
    staking_end_date: date | None = None


class FiatAttributes(_Attributes):
    asset_class: Literal["fiat"]
    interest_rate: Decimal | None = Field(
        default=None,
        ge=0,
        description="Annual simple interest in percent (4 = 4%)"
    )


class PreciousMetalAttributes(_Attributes):
    asset_class: Literal["precious_metal"]
    metal: Literal["gold", "silver"] | None = None
    form: Literal["bar", "coin"] | None = None
    weight_oz: Decimal | None = Field(default=None, gt=0)
    purity: str | None = None
    storage_location: str | None = None


class RealEstateAttributes(_Attributes):
    asset_class: Literal["real_estate"]
    sqm: Decimal | None = Field(default=None, gt=0)
    property_type: Literal["apartment", "house", "land", "commercial"] | None = None
    is_rented: bool | None = None
    monthly_rent: Decimal | None = Field(default=None, ge=0)
    annual_expenses: Decimal | None = Field(default=None, ge=0)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    interest_rate_type: Literal["fixed", "variable", "mixed"] | None = None
    location: str | None = None


class GenericAttributes(_Attributes):
    """Classes without market-specific fields."""

    asset_class: Literal["mineral", "private_equity", "other"]


AssetAttributes = Annotated[
    Union[
        SecurityAttributes,
        CommodityAttributes,
        CryptoAttributes,
        FiatAttributes,
        PreciousMetalAttributes,
        RealEstateAttributes,
        GenericAttributes,
    ],
    Field(discriminator="asset_class"),
]


# =============================================================================
# ASSET SNAPSHOT
# =============================================================================

class Asset(BaseModel):
    """
    Immutable snapshot of one holding.

    Amounts are in the holding `currency`. `purchase_price` is the unit
    price paid; for fiat deposits it is the amount per unit (usually 1).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, examples=["4f9c2a10"])
    name: str = Field(..., min_length=1, max_length=255, examples=["Apple Inc."])
    asset_class: AssetClass
    quantity: Decimal = Field(..., ge=0)
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    purchase_date: datetime | None = Field(
        default=None,
        description="Dates are read as midnight UTC; naive timestamps as UTC"
    )
    currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        examples=["EUR", "USD"],
        description="Holding currency (ISO 4217)"
    )
    attributes: AssetAttributes

    @model_validator(mode="before")
    @classmethod
    def inject_discriminator(cls, data):
        if not isinstance(data, dict) or "asset_class" not in data:
            return data

        asset_class = data["asset_class"]
        asset_class = asset_class.value if isinstance(asset_class, AssetClass) else asset_class
        attributes = data.get("attributes") or {}
        if isinstance(attributes, BaseModel):
            return data

        return {**data, "attributes": {**attributes, "asset_class": asset_class}}

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("purchase_date", mode="before")
    @classmethod
    def coerce_purchase_date(cls, v):
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min, tzinfo=timezone.utc)
        return v

    @field_validator("purchase_date")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    # =========================================================================
    # PROVIDER IDENTIFIERS
    # =========================================================================

    def price_identifier(self) -> str:
        """
        Identifier sent to the price resolver.

        Securities prefer the ISIN (the resolver turns it into a symbol);
        real estate is keyed per asset since every property is unique.
        """
        attrs = self.attributes
        if self.asset_class in EXCHANGE_TRADED_CLASSES:
            return getattr(attrs, "isin", None) or getattr(attrs, "ticker", None) or self.name
        if isinstance(attrs, CryptoAttributes):
            return attrs.coin_id or attrs.symbol or self.name
        if isinstance(attrs, PreciousMetalAttributes):
            return attrs.metal or self.name.lower() or "gold"
        if self.asset_class == AssetClass.REAL_ESTATE:
            return f"re-{self.id}"
        return self.name

    def history_identifier(self) -> str:
        """
        Identifier sent to the history providers.

        The historical quote provider only understands trading symbols,
        so the ticker wins over the ISIN here.
        """
        attrs = self.attributes
        if self.asset_class in EXCHANGE_TRADED_CLASSES:
            return getattr(attrs, "ticker", None) or getattr(attrs, "isin", None) or self.name
        return self.price_identifier()

    @property
    def cost_local(self) -> Decimal:
        """Purchase cost in the holding currency."""
        return self.purchase_price * self.quantity
