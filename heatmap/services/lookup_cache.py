# heatmap/services/lookup_cache.py
"""
Read-through memoization in front of the Price History Store.

Four caches, one per lookup kind:
    point    (ticker, date)  -> exact-date close      bounded LRU, hits only
    nearest  (ticker, date)  -> nearest on-or-before  bounded LRU, hits only
    latest   ticker          -> newest close          TTL
    anchor   (ticker, tf, as_of) -> timeframe anchor  TTL

Misses are not cached, so rows written later by a backfill become
visible without an explicit invalidation. Writers still call
invalidate_ticker() after they commit, which drops every entry for the
ticker (a refreshed row or a newly inserted nearer row would otherwise
be shadowed).

Values are frozen PricePoint snapshots, never ORM objects, so they stay
valid after the session that loaded them is closed.

Thread Safety:
    Each cache guards its OrderedDict with a threading.Lock. The cache is
    process-local; multiple worker processes each hold their own copy.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Hashable

from sqlalchemy.orm import Session

from heatmap.models import PriceHistory
from heatmap.services.price_history import PriceHistoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """Immutable snapshot of a stored close."""

    ticker: str
    date: date
    closing_price: Decimal

    @classmethod
    def from_row(cls, row: PriceHistory) -> "PricePoint":
        return cls(ticker=row.stock_ticker, date=row.date, closing_price=row.closing_price)


class BoundedLRUCache:
    """
    Thread-safe bounded LRU cache.

    Evicts least-recently-used entries when capacity is reached.
    """

    def __init__(self, maxsize: int = 10000) -> None:
        self._maxsize = maxsize
        self._cache: OrderedDict = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]
            return None

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self._maxsize:
                self._cache.popitem(last=False)
            self._cache[key] = value

    def discard_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Remove every key matching predicate. Returns the number removed."""
        with self._lock:
            doomed = [key for key in self._cache if predicate(key)]
            for key in doomed:
                del self._cache[key]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._cache


class TTLCache(BoundedLRUCache):
    """
    Bounded LRU cache whose entries expire after a fixed TTL.

    Expired entries are dropped lazily on read.
    """

    def __init__(
            self,
            ttl_seconds: int,
            maxsize: int = 10000,
            clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__(maxsize=maxsize)
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            if key not in self._cache:
                return None
            stored_at, value = self._cache[key]
            if self._clock() - stored_at >= self._ttl:
                del self._cache[key]
                logger.debug(f"Cache expired for {key}")
                return None
            self._cache.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        super().set(key, (self._clock(), value))


def _key_ticker(key: Hashable) -> str:
    return key[0] if isinstance(key, tuple) else key


class LookupCache:
    """
    Memoized price lookups shared by the resolver and the valuation engine.

    Args:
        store: Backing Price History Store
        ttl_seconds: TTL for the latest-price and anchor caches
        max_size: Capacity of each cache
        clock: Time source for TTL expiry (injectable for tests)
    """

    def __init__(
            self,
            store: PriceHistoryStore | None = None,
            ttl_seconds: int = 300,
            max_size: int = 10000,
            clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store or PriceHistoryStore()
        self._point = BoundedLRUCache(maxsize=max_size)
        self._nearest = BoundedLRUCache(maxsize=max_size)
        self._latest = TTLCache(ttl_seconds, maxsize=max_size, clock=clock)
        self._anchor = TTLCache(ttl_seconds, maxsize=max_size, clock=clock)

    # =========================================================================
    # PRICE LOOKUPS
    # =========================================================================

    def get(self, db: Session, ticker: str, on_date: date) -> PricePoint | None:
        key = (ticker, on_date)
        cached = self._point.get(key)
        if cached is not None:
            return cached

        row = self.store.get(db, ticker, on_date)
        if row is None:
            return None
        point = PricePoint.from_row(row)
        self._point.set(key, point)
        return point

    def nearest_on_or_before(self, db: Session, ticker: str, on_date: date) -> PricePoint | None:
        key = (ticker, on_date)
        cached = self._nearest.get(key)
        if cached is not None:
            return cached

        row = self.store.nearest_on_or_before(db, ticker, on_date)
        if row is None:
            return None
        point = PricePoint.from_row(row)
        self._nearest.set(key, point)
        return point

    def latest(self, db: Session, ticker: str) -> PricePoint | None:
        cached = self._latest.get(ticker)
        if cached is not None:
            return cached

        row = self.store.latest(db, ticker)
        if row is None:
            return None
        point = PricePoint.from_row(row)
        self._latest.set(ticker, point)
        return point

    # =========================================================================
    # TIMEFRAME ANCHOR MEMO
    # =========================================================================

    def get_anchor(self, ticker: str, timeframe: str, as_of: Hashable) -> Any | None:
        """Memoized anchor; as_of holds whatever else the anchor depended on."""
        return self._anchor.get((ticker, timeframe, as_of))

    def set_anchor(self, ticker: str, timeframe: str, as_of: Hashable, anchor: Any) -> None:
        self._anchor.set((ticker, timeframe, as_of), anchor)

    # =========================================================================
    # INVALIDATION
    # =========================================================================

    def invalidate_ticker(self, ticker: str) -> None:
        """Drop every cached entry for a ticker after its rows changed."""
        removed = sum(
            cache.discard_where(lambda key: _key_ticker(key) == ticker)
            for cache in (self._point, self._nearest, self._latest, self._anchor)
        )
        if removed:
            logger.debug(f"Invalidated {removed} cache entries for {ticker}")

    def clear(self) -> None:
        for cache in (self._point, self._nearest, self._latest, self._anchor):
            cache.clear()
