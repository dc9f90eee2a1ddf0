"""
Flag caches: a bounded per-flag LRU cache and a bulk catalog snapshot.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional

from flagvault.config import CacheConfig, DEFAULT_CACHE_CONFIG
from flagvault.evaluate import FlagMetadata

logger = logging.getLogger("flagvault")

Clock = Callable[[], float]

ENTRY_OVERHEAD_BYTES = 32


class CacheKey(NamedTuple):
    """Cache slot for a flag, optionally scoped to a target identifier."""

    flag_key: str
    target_id: Optional[str] = None

    def __str__(self) -> str:
        if self.target_id is None:
            return self.flag_key
        return f"{self.flag_key}:{self.target_id}"


@dataclass
class CacheEntry:
    """Cache entry with access bookkeeping. Times are epoch seconds."""

    value: bool
    cached_at: float
    expires_at: float
    last_accessed: float


@dataclass
class CacheStats:
    """Point-in-time cache statistics."""

    size: int = 0
    hit_rate: float = 0.0
    """Fraction of resident entries read at least once since insertion."""
    expired_entries: int = 0
    memory_usage: int = 0
    """Rough estimate in bytes; advisory only."""


@dataclass
class FlagDebugInfo:
    """Cache-resident state of a single flag."""

    flag_key: str
    cached: bool
    value: Optional[bool] = None
    cached_at: Optional[float] = None
    expires_at: Optional[float] = None
    time_until_expiry: Optional[float] = None
    last_accessed: Optional[float] = None


class FlagCache:
    """
    Per-flag cache of evaluation results.

    Features:
    - Bounded size with least-recently-used eviction
    - Lazy TTL expiry (checked on read)
    - Separate slots per target identifier
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock: Clock = time.time):
        self._config = config or DEFAULT_CACHE_CONFIG
        self._clock = clock
        self._cache: Dict[CacheKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._cache

    def get(self, key: CacheKey) -> Optional[bool]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            The cached value, or None if missing or expired
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        now = self._clock()
        if now > entry.expires_at:
            del self._cache[key]
            return None

        entry.last_accessed = now
        return entry.value

    def put(self, key: CacheKey, value: bool) -> None:
        """
        Store a value, evicting the least recently used entry when full.

        Args:
            key: Cache key
            value: Evaluation result
        """
        if key not in self._cache and len(self._cache) >= self._config.max_entries:
            self._evict_oldest()

        now = self._clock()
        self._cache[key] = CacheEntry(
            value=value,
            cached_at=now,
            expires_at=now + self._config.ttl_seconds,
            last_accessed=now,
        )

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        # min() keeps the first of equal candidates, i.e. the earliest inserted
        oldest_key = min(self._cache, key=lambda k: self._cache[k].last_accessed)
        del self._cache[oldest_key]
        logger.debug(f"FlagVault: Evicted '{oldest_key}' from cache")

    def expiring_keys(self, within_seconds: float) -> List[CacheKey]:
        """Keys without a target id that expire within the given window."""
        now = self._clock()
        return [
            key
            for key, entry in self._cache.items()
            if key.target_id is None and entry.expires_at - now <= within_seconds
        ]

    def clear(self) -> None:
        """Clear all cached data."""
        self._cache.clear()

    def stats(self) -> CacheStats:
        """Get cache statistics."""
        now = self._clock()
        accessed = 0
        expired = 0
        for entry in self._cache.values():
            if entry.last_accessed > entry.cached_at:
                accessed += 1
            if now > entry.expires_at:
                expired += 1

        size = len(self._cache)
        return CacheStats(
            size=size,
            hit_rate=accessed / size if size > 0 else 0.0,
            expired_entries=expired,
            memory_usage=self._estimate_memory_usage(),
        )

    def _estimate_memory_usage(self) -> int:
        # ~2 bytes per key character plus the entry's numeric fields
        return sum(len(str(key)) * 2 + ENTRY_OVERHEAD_BYTES for key in self._cache)

    def debug(self, flag_key: str, target_id: Optional[str] = None) -> FlagDebugInfo:
        """Describe the cached state of a flag without touching its access time."""
        entry = self._cache.get(CacheKey(flag_key, target_id))
        if entry is None:
            return FlagDebugInfo(flag_key=flag_key, cached=False)

        return FlagDebugInfo(
            flag_key=flag_key,
            cached=True,
            value=entry.value,
            cached_at=entry.cached_at,
            expires_at=entry.expires_at,
            time_until_expiry=entry.expires_at - self._clock(),
            last_accessed=entry.last_accessed,
        )


@dataclass(frozen=True)
class BulkSnapshot:
    """Snapshot of the whole flag catalog."""

    flags: Mapping[str, FlagMetadata] = field(default_factory=dict)
    cached_at: float = 0.0
    expires_at: float = 0.0


class BulkFlagsCache:
    """Holds at most one catalog snapshot, replaced wholesale on refresh."""

    def __init__(self, config: Optional[CacheConfig] = None, clock: Clock = time.time):
        self._config = config or DEFAULT_CACHE_CONFIG
        self._clock = clock
        self._snapshot: Optional[BulkSnapshot] = None

    def get(self) -> Optional[BulkSnapshot]:
        """Return the snapshot if it is still fresh."""
        snapshot = self._snapshot
        if snapshot is None or self._clock() >= snapshot.expires_at:
            return None
        return snapshot

    def put(self, flags: Mapping[str, FlagMetadata]) -> BulkSnapshot:
        """Replace the snapshot with a copy of the given flags."""
        now = self._clock()
        self._snapshot = BulkSnapshot(
            flags=dict(flags),
            cached_at=now,
            expires_at=now + self._config.ttl_seconds,
        )
        return self._snapshot

    def clear(self) -> None:
        """Drop the snapshot."""
        self._snapshot = None
