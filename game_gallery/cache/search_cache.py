"""Steam search result cache.

Memoizes upstream search results per (query, limit) for a fixed TTL.
Validity is checked on every read; the periodic sweep only reclaims
memory. Upstream calls are made without holding the lock, so simultaneous
misses for one key may each call upstream.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import SEARCH_CACHE_TTL
from ..errors import ErrorKind, GalleryError
from ..models import SteamApp
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

SearchFetcher = Callable[[str, int], Awaitable[List[SteamApp]]]


@dataclass
class CacheEntry:
    results: List[SteamApp]
    timestamp: float


@dataclass
class SearchResult:
    """Outcome of SearchCache.search()"""
    success: bool
    results: List[SteamApp] = field(default_factory=list)
    cached: bool = False
    error: Optional[ErrorKind] = None
    message: Optional[str] = None


def make_cache_key(query: str, limit: int) -> str:
    # limit is part of the key so a smaller cached page is never served for a larger request
    return f"{query}:{limit}"


class SearchCache:
    """TTL cache in front of an upstream search call"""

    def __init__(
        self,
        fetcher: SearchFetcher,
        ttl: float = SEARCH_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        return len(self._entries)

    async def _lookup(self, key: str) -> Optional[List[SteamApp]]:
        async with self._lock.read():
            entry = self._entries.get(key)
            if entry is not None and self.clock() - entry.timestamp < self.ttl:
                return entry.results
        return None

    async def search(self, query: str, limit: int) -> SearchResult:
        """Return cached results for the query, or fetch and cache them."""
        query = query.strip()
        if not query:
            return SearchResult(success=True)

        key = make_cache_key(query, limit)
        cached = await self._lookup(key)
        if cached is not None:
            logger.debug(f"[SearchCache] Cache hit for query: {query}")
            return SearchResult(success=True, results=list(cached), cached=True)

        logger.info(f"[SearchCache] Cache miss for query: {query}, fetching from Steam...")
        try:
            results = await self.fetcher(query, limit)
        except GalleryError as e:
            logger.error(f"[SearchCache] Search failed for '{query}' (limit={limit}, {e.kind.value}): {e}")
            return SearchResult(success=False, error=e.kind, message=str(e))

        results = list(results)
        async with self._lock.write():
            self._entries[key] = CacheEntry(results=results, timestamp=self.clock())

        return SearchResult(success=True, results=list(results))

    async def sweep(self) -> int:
        """Remove every entry older than the TTL. Returns the number removed."""
        async with self._lock.write():
            now = self.clock()
            expired = [key for key, entry in self._entries.items() if now - entry.timestamp > self.ttl]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        if expired:
            logger.info(f"[SearchCache] Swept {len(expired)} expired entries, {remaining} remaining")
        return len(expired)

    async def clear(self) -> None:
        async with self._lock.write():
            self._entries.clear()

    async def stats(self) -> Dict[str, Any]:
        async with self._lock.read():
            count = len(self._entries)
        return {
            'cached_searches': count,
            'cache_duration': self.ttl,
        }
