from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

from quotedesk.schemas.quote import CacheEntry, Quote, QuoteSource

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


def is_fresh(fetched_at: float, now: float, ttl: float) -> bool:
    return now - fetched_at < ttl


class QuoteCache:
    """Last-known quote per symbol.

    Entries are replaced wholesale and only by quotes with a finite price, so a
    failed refresh never destroys the last good value. Nothing is evicted.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(normalize_symbol(symbol))

    def put(self, symbol: str, quote: Quote, source: QuoteSource) -> CacheEntry | None:
        if quote.is_empty:
            return None
        key = normalize_symbol(symbol)
        entry = CacheEntry(quote=quote, fetched_at=self._clock(), source=source)
        with self._lock:
            self._entries[key] = entry
        return entry

    @staticmethod
    def is_fresh(entry: CacheEntry, now: float, ttl: float) -> bool:
        return is_fresh(entry.fetched_at, now, ttl)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TimedCache(Generic[K, V]):
    """Keyed ``(value, fetched_at)`` store with a single TTL."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}
        self._lock = threading.Lock()

    def get_fresh(self, key: K) -> tuple[bool, V | None]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, fetched_at = entry
        if not is_fresh(fetched_at, now, self.ttl_seconds):
            return False, None
        return True, value

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock())

    def fetched_at(self, key: K) -> float | None:
        with self._lock:
            entry = self._entries.get(key)
        return entry[1] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
