# backend/portfolio_core/models.py
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class AssetClass(str, enum.Enum):
    EQUITY = "equity"
    ETF = "etf"
    FUND = "fund"
    CRYPTO = "crypto"
    FIAT = "fiat"
    COMMODITY = "commodity"
    MINERAL = "mineral"
    PRECIOUS_METAL = "precious_metal"
    REAL_ESTATE = "real_estate"
    PRIVATE_EQUITY = "private_equity"
    OTHER = "other"


# Classes quoted on an exchange and priced through the quote provider chain
EXCHANGE_TRADED_CLASSES: frozenset[AssetClass] = frozenset({
    AssetClass.EQUITY,
    AssetClass.ETF,
    AssetClass.FUND,
    AssetClass.COMMODITY,
})

# Classes priced through the batched coin market endpoint
COIN_PRICED_CLASSES: frozenset[AssetClass] = frozenset({
    AssetClass.CRYPTO,
    AssetClass.PRECIOUS_METAL,
})

# Classes without any daily market price (constant value in history)
NON_MARKET_CLASSES: frozenset[AssetClass] = frozenset({
    AssetClass.REAL_ESTATE,
    AssetClass.FIAT,
    AssetClass.PRIVATE_EQUITY,
})


class PriceCacheEntry(Base):
    """
    Most recent resolved price per (identifier, asset class, currency).

    Rows are point-in-time snapshots, not counters: concurrent writers for
    the same key simply overwrite each other (last write wins).

    Identifiers for crypto and precious metals are stored case-folded;
    the price is always expressed in `currency`.
    """
    __tablename__ = "price_cache"
    __table_args__ = (
        UniqueConstraint('identifier', 'asset_class', 'currency', name='uq_price_cache_key'),
        # Eviction scans "all rows of class X older than T"
        Index('ix_price_cache_class_fetched', 'asset_class', 'fetched_at'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    identifier: Mapped[str] = mapped_column(String(255))
    asset_class: Mapped[str] = mapped_column(String(32))
    currency: Mapped[str] = mapped_column(String(3))

    price: Mapped[Decimal] = mapped_column(Numeric(24, 8))
    source: Mapped[str] = mapped_column(String(50))  # e.g. "tiingo", "coingecko", "openai"
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
