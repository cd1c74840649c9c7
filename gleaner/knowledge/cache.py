"""
Embedding Cache

Bounded key -> (content, embedding) store that saves redundant
embedding calls.

Design decisions:
- Disposable acceleration layer, never the source of truth
- Size-bounded; eviction is oldest-timestamp-first down to a low-water
  mark so small adds after an eviction do not evict again
- One read/write lock: get() runs concurrently, add()/evict exclusive
"""

from dataclasses import dataclass

from gleaner.core.exceptions import CacheCapacityError
from gleaner.core.locks import ReadWriteLock
from gleaner.core.types import CacheEntry
from gleaner.observability.logging import StructuredLogger, get_logger


@dataclass
class CacheStats:
    """Counters describing cache behavior."""

    entries: int
    current_size: int
    max_size: int
    hits: int
    misses: int
    evictions: int


class EmbeddingCache:
    """
    In-process embedding cache with size-bounded eviction.

    Invariant: current_size <= max_size once add() returns.
    """

    def __init__(
        self,
        max_size: int,
        evict_to_ratio: float = 0.8,
        logger: StructuredLogger | None = None,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if not 0.0 < evict_to_ratio <= 1.0:
            raise ValueError("evict_to_ratio must be in (0, 1]")

        self._max_size = max_size
        self._low_water = int(max_size * evict_to_ratio)
        self._entries: dict[str, CacheEntry] = {}
        self._current_size = 0
        self._lock = ReadWriteLock()
        self._logger = logger or get_logger("gleaner.cache")

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def current_size(self) -> int:
        return self._current_size

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> CacheEntry | None:
        """Return the entry for key, or None when absent."""
        async with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    async def add(self, key: str, entry: CacheEntry) -> None:
        """
        Store an entry, evicting older entries when it would not fit.

        Raises:
            CacheCapacityError: The entry alone is larger than max_size
        """
        if entry.size_bytes > self._max_size:
            raise CacheCapacityError(
                f"Cache entry of {entry.size_bytes} bytes exceeds cache size {self._max_size}",
                entry_size=entry.size_bytes,
                max_size=self._max_size,
                context={"key": key},
            )

        async with self._lock.write():
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._current_size -= previous.size_bytes

            if self._current_size + entry.size_bytes > self._max_size:
                # Never stop above the room the new entry needs
                target = min(self._low_water, self._max_size - entry.size_bytes)
                self._evict_until(target)

            self._entries[key] = entry
            self._current_size += entry.size_bytes

    async def remove(self, key: str) -> bool:
        """Drop a single entry."""
        async with self._lock.write():
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._current_size -= entry.size_bytes
            return True

    async def clear(self) -> None:
        """Drop every entry."""
        async with self._lock.write():
            self._entries.clear()
            self._current_size = 0

    async def stats(self) -> CacheStats:
        async with self._lock.read():
            return CacheStats(
                entries=len(self._entries),
                current_size=self._current_size,
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _evict_until(self, target: int) -> None:
        """Evict oldest entries until current size <= target. Caller holds the write lock."""
        oldest_first = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
        evicted = 0

        for key, entry in oldest_first:
            if self._current_size <= target:
                break
            del self._entries[key]
            self._current_size -= entry.size_bytes
            evicted += 1

        self._evictions += evicted
        if evicted:
            self._logger.debug(
                "Evicted cache entries",
                evicted=evicted,
                current_size=self._current_size,
                max_size=self._max_size,
            )
