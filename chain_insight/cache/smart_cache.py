"""
Analysis result cache with kind- and age-aware expiry.
"""

import asyncio
import hashlib
import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern, Union

logger = logging.getLogger(__name__)

MINUTE = 60.0


class CacheKind(str, Enum):
    """Category of cached data, which selects the expiry policy."""
    TRANSACTION = "transaction"
    BLOCK = "block"


@dataclass(frozen=True)
class ExpiryPolicy:
    """
    Short TTL while an entry is fresh, a longer one once it is presumed final.

    An entry whose age is below ``freshness_threshold`` expires after
    ``fresh_ttl``; older entries expire after ``settled_ttl``.
    """
    freshness_threshold: float
    fresh_ttl: float
    settled_ttl: float

    def ttl_for_age(self, age: float) -> float:
        if age < self.freshness_threshold:
            return self.fresh_ttl
        return self.settled_ttl


DEFAULT_POLICIES: Dict[CacheKind, ExpiryPolicy] = {
    CacheKind.TRANSACTION: ExpiryPolicy(
        freshness_threshold=10 * MINUTE, fresh_ttl=5 * MINUTE, settled_ttl=60 * MINUTE
    ),
    CacheKind.BLOCK: ExpiryPolicy(
        freshness_threshold=30 * MINUTE, fresh_ttl=5 * MINUTE, settled_ttl=30 * MINUTE
    ),
}


@dataclass
class CacheEntry:
    """A cached value and its bookkeeping."""
    data: Any
    kind: CacheKind
    fingerprint: str
    created_at: float
    refreshed_at: float
    last_accessed_at: float
    access_count: int = 1


def fingerprint(data: Any) -> str:
    """SHA-256 of the canonical JSON rendering of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class SmartCache:
    """
    In-process cache for formatted analysis payloads.

    Expiry is measured from the entry's last refresh and depends on the kind
    and the age of the entry. At capacity the least recently accessed entries
    are evicted in one batch. Re-inserting data with an unchanged fingerprint
    only refreshes the expiry clock. All operations share one asyncio lock and
    internal faults degrade to a miss.
    """

    def __init__(
        self,
        max_size: int = 1000,
        eviction_fraction: float = 0.2,
        policies: Optional[Dict[CacheKind, ExpiryPolicy]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries
            eviction_fraction: Share of capacity freed by one eviction batch
            policies: Expiry policy per kind
            clock: Time source in seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.eviction_fraction = eviction_fraction
        self.policies = dict(policies or DEFAULT_POLICIES)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evicted = 0
        self._expired_cleaned = 0
        self._last_cleanup: Optional[float] = None

    @staticmethod
    def transaction_key(network_id: int, tx_hash: str) -> str:
        return f"{CacheKind.TRANSACTION.value}_{network_id}_{tx_hash}"

    @staticmethod
    def block_key(network_id: int, block_id: Union[int, str]) -> str:
        return f"{CacheKind.BLOCK.value}_{network_id}_{block_id}"

    def effective_ttl(self, kind: CacheKind, age: float) -> float:
        return self.policies[CacheKind(kind)].ttl_for_age(age)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        # The TTL is picked by the current age, so an unread entry that passed
        # fresh_ttl becomes servable again once age reaches freshness_threshold.
        age = now - entry.refreshed_at
        return age > self.effective_ttl(entry.kind, age)

    async def get(self, key: str) -> Optional[Any]:
        """
        Return the cached data for ``key`` or None.

        Expired entries are removed on read. Every call counts as a hit or
        a miss.
        """
        async with self._lock:
            try:
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                    return None

                now = self._clock()
                if self._is_expired(entry, now):
                    del self._entries[key]
                    self._misses += 1
                    logger.debug(f"Cache expired for {key}")
                    return None

                entry.access_count += 1
                entry.last_accessed_at = now
                self._hits += 1
                logger.debug(f"Cache hit for {key} (accessed {entry.access_count} times)")
                return entry.data
            except Exception as e:
                logger.error(f"Cache read failed for {key}: {e}")
                self._misses += 1
                return None

    async def set(self, key: str, data: Any, kind: Union[CacheKind, str]) -> None:
        """Store ``data`` under ``key``."""
        async with self._lock:
            try:
                kind = CacheKind(kind)
                now = self._clock()
                digest = fingerprint(data)

                existing = self._entries.get(key)
                if existing is not None and existing.fingerprint == digest:
                    existing.refreshed_at = now
                    existing.last_accessed_at = now
                    logger.debug(f"Refreshed cache timestamp for {key}")
                    return

                if existing is None and len(self._entries) >= self.max_size:
                    self._evict_least_recent()

                self._entries[key] = CacheEntry(
                    data=data,
                    kind=kind,
                    fingerprint=digest,
                    created_at=now,
                    refreshed_at=now,
                    last_accessed_at=now,
                )
                logger.debug(f"Cached {kind.value} analysis: {key}")
            except Exception as e:
                logger.error(f"Cache write failed for {key}: {e}")

    async def preload(self, key: str, data: Any, kind: Union[CacheKind, str]) -> None:
        await self.set(key, data, kind)
        logger.info(f"Preloaded {CacheKind(kind).value} into cache: {key}")

    async def has(self, key: str) -> bool:
        """Whether a live entry exists. Does not count as an access."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return False
            return True

    async def entry(self, key: str) -> Optional[CacheEntry]:
        """Bookkeeping of a stored entry, without touching access stats."""
        async with self._lock:
            return self._entries.get(key)

    def _evict_least_recent(self) -> None:
        """
        Free a batch of capacity, least recently accessed first.

        Leaves room for one insertion with at most
        ``max_size * (1 - eviction_fraction)`` entries afterwards.
        """
        retained_after_insert = max(1, int(self.max_size * (1 - self.eviction_fraction)))
        to_remove = len(self._entries) - (retained_after_insert - 1)
        if to_remove <= 0:
            return

        ordered = sorted(self._entries.items(), key=lambda item: item[1].last_accessed_at)
        for key, _ in ordered[:to_remove]:
            del self._entries[key]
        self._evicted += to_remove
        logger.info(f"Evicted {to_remove} old cache entries")

    async def clean_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
            self._expired_cleaned += len(expired)
            self._last_cleanup = now
            if expired:
                logger.info(f"Cleaned {len(expired)} expired cache entries")
            return len(expired)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            logger.info("Cache cleared")

    async def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Remove every entry whose key matches ``pattern``.

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        async with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        logger.info(f"Invalidated {len(doomed)} cache entries matching pattern {regex.pattern}")
        return len(doomed)

    async def keys(self) -> List[str]:
        async with self._lock:
            return list(self._entries)

    async def get_stats(self) -> Dict[str, Any]:
        """Size, hit rate, access and kind statistics."""
        async with self._lock:
            entries = list(self._entries.values())
            total_access = sum(entry.access_count for entry in entries)
            average = round(total_access / len(entries), 2) if entries else 0.0
            lookups = self._hits + self._misses
            hit_rate = (self._hits / lookups) * 100 if lookups else 0.0

            kind_breakdown: Dict[str, int] = {}
            for entry in entries:
                kind_breakdown[entry.kind.value] = kind_breakdown.get(entry.kind.value, 0) + 1

            return {
                "size": len(entries),
                "max_size": self.max_size,
                "hit_rate": hit_rate,
                "total_access": total_access,
                "average_access_per_entry": average,
                "access_stats": {
                    "hits": self._hits,
                    "misses": self._misses,
                    "evicted": self._evicted,
                },
                "kind_breakdown": kind_breakdown,
                "expired_cleaned": self._expired_cleaned,
                "last_cleanup": self._last_cleanup,
            }
