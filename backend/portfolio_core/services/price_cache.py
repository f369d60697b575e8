# backend/portfolio_core/services/price_cache.py
"""
TTL-aware storage of resolved price quotations.

A quotation is an independent point-in-time snapshot keyed by
(identifier, asset class, currency). Writers never read-modify-write, so
the store needs no locking across invocations: the last write wins.

Freshness:
    fresh  iff  fetched_at > now - cache_ttl_for(asset_class)

Retention:
    every real estate write is followed by deleting real estate rows older
    than REAL_ESTATE_RETENTION, so AI estimates cannot pile up or linger.

Backends:
    InMemoryPriceCache  dict + lock, for tests and CACHE_BACKEND=memory
    SqlPriceCache       `price_cache` table through an injected session factory

Usage:
    cache = SqlPriceCache(get_session_factory())
    key = QuoteKey.build("BTC", AssetClass.CRYPTO, "eur")   # ("btc", crypto, "EUR")
    hit = cache.get(key)
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portfolio_core.models import AssetClass, COIN_PRICED_CLASSES, PriceCacheEntry
from portfolio_core.services.constants import (
    LOW_CONFIDENCE_SOURCE,
    REAL_ESTATE_RETENTION,
    cache_ttl_for,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# KEYS AND RECORDS
# =============================================================================

class QuoteKey(NamedTuple):
    """
    Composite cache and result key.

    Build through `QuoteKey.build` so normalization is applied: currency is
    upper-cased, crypto and precious metal identifiers are case-folded and
    stripped, every other identifier keeps its case.
    """

    identifier: str
    asset_class: AssetClass
    currency: str

    @classmethod
    def build(cls, identifier: str, asset_class: AssetClass, currency: str) -> "QuoteKey":
        if asset_class in COIN_PRICED_CLASSES:
            identifier = identifier.strip().casefold()
        return cls(identifier, AssetClass(asset_class), currency.strip().upper())

    @property
    def label(self) -> str:
        """`identifier-currency`, the key format of the HTTP response."""
        return f"{self.identifier}-{self.currency}"


@dataclass(frozen=True)
class PriceQuotation:
    """
    Cached price of one key.

    Attributes:
        key: Normalized composite key
        price: Unit price already expressed in key.currency
        source: Provider tag, or LOW_CONFIDENCE_SOURCE
        fetched_at: Timezone-aware UTC timestamp
    """

    key: QuoteKey
    price: Decimal
    source: str
    fetched_at: datetime

    @property
    def is_low_confidence(self) -> bool:
        return self.source == LOW_CONFIDENCE_SOURCE


# =============================================================================
# INTERFACE
# =============================================================================

class CacheStore(ABC):
    """
    Keyed, TTL-aware quotation store.

    Subclasses implement raw storage (`_load`, `_save`, `_delete_older_than`);
    freshness and the retention policy live here so both backends share them.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: QuoteKey) -> PriceQuotation | None:
        """Fresh quotation for `key`, or None when missing or expired."""
        quotation = self._load(key)
        if quotation is None:
            return None

        cutoff = self.now() - cache_ttl_for(key.asset_class)
        if quotation.fetched_at <= cutoff:
            logger.debug(f"Cache stale for {key.label} ({key.asset_class.value})")
            return None
        return quotation

    def put(self, quotation: PriceQuotation) -> None:
        """Upsert by composite key, then apply the real estate retention policy."""
        self._save(quotation)

        if quotation.key.asset_class == AssetClass.REAL_ESTATE:
            evicted = self.evict_older_than(AssetClass.REAL_ESTATE, REAL_ESTATE_RETENTION)
            if evicted:
                logger.info(f"Evicted {evicted} real estate quotations older than {REAL_ESTATE_RETENTION.days} days")

    def evict_older_than(self, asset_class: AssetClass, age: timedelta) -> int:
        """Delete every row of `asset_class` fetched before now - age. Returns the count."""
        return self._delete_older_than(AssetClass(asset_class), self.now() - age)

    @abstractmethod
    def _load(self, key: QuoteKey) -> PriceQuotation | None:
        pass

    @abstractmethod
    def _save(self, quotation: PriceQuotation) -> None:
        pass

    @abstractmethod
    def _delete_older_than(self, asset_class: AssetClass, cutoff: datetime) -> int:
        pass


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

class InMemoryPriceCache(CacheStore):
    """Process-local store. Contents vanish with the process."""

    def __init__(self, clock: Clock = utc_now) -> None:
        super().__init__(clock)
        self._entries: dict[QuoteKey, PriceQuotation] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _load(self, key: QuoteKey) -> PriceQuotation | None:
        with self._lock:
            return self._entries.get(key)

    def _save(self, quotation: PriceQuotation) -> None:
        with self._lock:
            self._entries[quotation.key] = quotation

    def _delete_older_than(self, asset_class: AssetClass, cutoff: datetime) -> int:
        with self._lock:
            stale = [
                key for key, quotation in self._entries.items()
                if key.asset_class == asset_class and quotation.fetched_at < cutoff
            ]
            for key in stale:
                del self._entries[key]
            return len(stale)


# =============================================================================
# SQL BACKEND
# =============================================================================

class SqlPriceCache(CacheStore):
    """
    Store backed by the `price_cache` table.

    Each operation opens and commits its own short session; the store is
    safe to share between requests. Database errors degrade to a cache miss
    (reads) or a skipped write, since a quotation can always be re-fetched.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock = utc_now) -> None:
        super().__init__(clock)
        self._session_factory = session_factory

    def _load(self, key: QuoteKey) -> PriceQuotation | None:
        try:
            with self._session_factory() as session:
                row = session.scalars(self._key_query(key)).first()
                if row is None:
                    return None
                return PriceQuotation(
                    key=key,
                    price=Decimal(row.price),
                    source=row.source,
                    fetched_at=_as_utc(row.fetched_at),
                )
        except SQLAlchemyError as e:
            logger.warning(f"Price cache read failed for {key.label}: {e}")
            return None

    def _save(self, quotation: PriceQuotation) -> None:
        key = quotation.key
        try:
            with self._session_factory() as session:
                row = session.scalars(self._key_query(key)).first()
                if row is None:
                    row = PriceCacheEntry(
                        identifier=key.identifier,
                        asset_class=key.asset_class.value,
                        currency=key.currency,
                    )
                    session.add(row)

                row.price = quotation.price
                row.source = quotation.source
                row.fetched_at = quotation.fetched_at
                session.commit()
        except IntegrityError:
            # A concurrent writer inserted the same key first; theirs stands
            logger.debug(f"Concurrent price cache insert for {key.label}")
        except SQLAlchemyError as e:
            logger.warning(f"Price cache write failed for {key.label}: {e}")

    def _delete_older_than(self, asset_class: AssetClass, cutoff: datetime) -> int:
        try:
            with self._session_factory() as session:
                result = session.execute(
                    delete(PriceCacheEntry).where(
                        PriceCacheEntry.asset_class == asset_class.value,
                        PriceCacheEntry.fetched_at < cutoff,
                    )
                )
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.warning(f"Price cache eviction failed for {asset_class.value}: {e}")
            return 0

    @staticmethod
    def _key_query(key: QuoteKey):
        return select(PriceCacheEntry).where(
            PriceCacheEntry.identifier == key.identifier,
            PriceCacheEntry.asset_class == key.asset_class.value,
            PriceCacheEntry.currency == key.currency,
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
