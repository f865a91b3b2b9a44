"""
Strikewise — Chain Cache

In-process cache of enriched chains owned by the service layer. Entries are
keyed by (underlying, expiry filter, time bucket): a bucket spans
``ttl_seconds``, so a chain is reused until its bucket rolls over and the
next request builds a fresh one. Oldest entries are evicted past
``max_entries``.

Chains are frozen, so a cached value can be handed to any number of readers.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Callable, Optional

import structlog

from strikewise.config import get_settings
from strikewise.errors import InvalidInputError
from strikewise.models import OptionsChain

log = structlog.get_logger(__name__)

CacheKey = tuple[str, Optional[date], int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChainCache:
    """Thread-safe TTL-bucketed LRU cache of ``OptionsChain`` values."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        settings = get_settings()
        self.ttl_seconds = settings.chain_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.chain_cache_max_entries if max_entries is None else max_entries
        if self.ttl_seconds <= 0:
            raise InvalidInputError(f"Cache TTL must be positive, got {self.ttl_seconds}")
        if self.max_entries <= 0:
            raise InvalidInputError(f"Cache size must be positive, got {self.max_entries}")
        self._clock = clock
        self._entries: OrderedDict[CacheKey, OptionsChain] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def bucket(self, when: Optional[datetime] = None) -> int:
        """Time bucket index for *when* (defaults to now)."""
        when = when or self._clock()
        return int(when.timestamp() // self.ttl_seconds)

    def _key(self, underlying: str, expiry: Optional[date]) -> CacheKey:
        return (underlying.upper(), expiry, self.bucket())

    def get(self, underlying: str, expiry: Optional[date] = None) -> Optional[OptionsChain]:
        """Chain for the current bucket, or None on a miss."""
        key = self._key(underlying, expiry)
        with self._lock:
            chain = self._entries.get(key)
            if chain is None:
                self._misses += 1
                log.debug("chain_cache.miss", underlying=key[0], bucket=key[2])
                return None
            self._entries.move_to_end(key)
            self._hits += 1
        log.debug("chain_cache.hit", underlying=key[0], bucket=key[2])
        return chain

    def put(self, chain: OptionsChain, expiry: Optional[date] = None) -> None:
        """Store *chain* in the current bucket, evicting stale and excess entries."""
        key = self._key(chain.underlying, expiry)
        with self._lock:
            stale = [k for k in self._entries if k[2] < key[2]]
            for k in stale:
                del self._entries[k]
            self._entries[key] = chain
            self._entries.move_to_end(key)
            evicted = 0
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                evicted += 1
        if stale or evicted:
            log.debug("chain_cache.evicted", stale=len(stale), overflow=evicted)

    def invalidate(self, underlying: str) -> int:
        """Drop every entry for *underlying*. Returns count deleted."""
        symbol = underlying.upper()
        with self._lock:
            keys = [k for k in self._entries if k[0] == symbol]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        """Get basic cache stats."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.ttl_seconds,
                "max_entries": self.max_entries,
            }
