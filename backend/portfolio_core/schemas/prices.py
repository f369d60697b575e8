# backend/portfolio_core/schemas/prices.py
"""
Pydantic schemas for the price resolution endpoint.

The response is a flat map keyed `"<identifier>-<currency>"` using the
normalized identifier (crypto and metal identifiers lower-cased).
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from portfolio_core.models import AssetClass

MAX_PRICE_REQUESTS = 200


class PriceRequestItem(BaseModel):
    identifier: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["AAPL", "IE00BK5BQT80", "bitcoin", "gold"],
    )
    asset_class: AssetClass
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    force_refresh: bool = False
    purchase_price: Decimal | None = Field(
        default=None,
        ge=0,
        description="Real estate only: price paid, the fallback when no estimate is available"
    )
    purchase_currency: str | None = Field(default=None, min_length=3, max_length=3)
    property_details: dict[str, Any] | None = Field(
        default=None,
        description="Real estate only: attributes passed to the value estimate"
    )

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be blank")
        return v

    @field_validator("currency", "purchase_currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class PricesRequest(BaseModel):
    requests: list[PriceRequestItem] = Field(..., min_length=1, max_length=MAX_PRICE_REQUESTS)


class PriceQuoteResponse(BaseModel):
    price: Decimal
    source: str = Field(..., examples=["tiingo", "coingecko", "purchase_price"])
