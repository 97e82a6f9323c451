"""In-memory AST cache with LRU eviction and TTL expiry."""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from ..parser.config import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL
from ..parser.symbols import AST, AST_VERSION


@dataclass
class CacheEntry:
    """A cached AST and the hash of the content it was parsed from."""
    ast: AST
    content_hash: str
    version: str = AST_VERSION
    created_at: float = 0.0         # Clock value at insertion


@dataclass
class CacheStats:
    """Counters exposed by ASTCache.stats()."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    size: int = 0
    max_size: int = DEFAULT_CACHE_MAX_SIZE
    ttl: float = DEFAULT_CACHE_TTL

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "size": self.size,
            "max_size": self.max_size,
            "ttl": self.ttl,
        }


class ASTCache:
    """Thread-safe cache keyed by ``(file_path, version)``.

    Eviction is least-recently-used: reads and writes move an entry to the
    back; the front entry is evicted first. Entries older than the TTL are
    dropped on access.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: "OrderedDict[tuple[str, str], CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._clock = clock
        self._stats = CacheStats(max_size=max_size, ttl=ttl)
        self.max_size = max_size if max_size > 0 else DEFAULT_CACHE_MAX_SIZE
        self.ttl = ttl if ttl > 0 else DEFAULT_CACHE_TTL

    def get(self, key: str, version: str = AST_VERSION) -> Optional[CacheEntry]:
        """Get a live entry, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get((key, version))
            if entry is None:
                self._stats.misses += 1
                return None
            if self._clock() - entry.created_at > self.ttl:
                del self._entries[(key, version)]
                self._stats.expirations += 1
                self._stats.misses += 1
                return None
            self._entries.move_to_end((key, version))
            self._stats.hits += 1
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Install or replace the entry for ``(key, entry.version)``."""
        with self._lock:
            entry.created_at = self._clock()
            self._entries[(key, entry.version)] = entry
            self._entries.move_to_end((key, entry.version))
            self._evict()

    def invalidate(self, key: str) -> None:
        """Drop every version cached for ``key``."""
        with self._lock:
            for cached_key in [k for k in self._entries if k[0] == key]:
                del self._entries[cached_key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return any(k[0] == key for k in self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._entries)
            self._stats.max_size = self.max_size
            self._stats.ttl = self.ttl
            return CacheStats(**self._stats.to_dict())

    def set_max_size(self, max_size: int) -> None:
        with self._lock:
            self.max_size = max_size if max_size > 0 else DEFAULT_CACHE_MAX_SIZE
            self._evict()

    def set_ttl(self, ttl: float) -> None:
        with self._lock:
            self.ttl = ttl if ttl > 0 else DEFAULT_CACHE_TTL

    def _evict(self) -> None:
        # Caller holds the lock
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
            self._stats.evictions += 1
