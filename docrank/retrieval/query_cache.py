"""In-memory cache of query embeddings."""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "query:"


@dataclass
class CacheEntry:
    """Cached query vector."""
    embedding: list[float]
    timestamp: float


class QueryEmbeddingCache:
    """
    Bounded, time-expiring map from query text to embedding.

    Expired entries are swept only once the cache grows past max_entries.
    Purely a performance optimization: losing entries never changes results.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock

    @staticmethod
    def _key(query: str) -> str:
        return f"{CACHE_KEY_PREFIX}{query}"

    def get(self, query: str) -> Optional[list[float]]:
        """Cached embedding, or None if missing or expired."""
        entry = self._entries.get(self._key(query))
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self._ttl:
            return None
        return entry.embedding

    def set(self, query: str, embedding: list[float]):
        self._entries[self._key(query)] = CacheEntry(embedding=embedding, timestamp=self._clock())
        if len(self._entries) > self._max_entries:
            self._cleanup_expired()

    async def get_or_compute(
        self,
        query: str,
        compute: Callable[[str], Awaitable[list[float]]],
    ) -> list[float]:
        """Return the cached embedding for query, computing and caching it on a miss."""
        cached = self.get(query)
        if cached is not None:
            return cached

        embedding = await compute(query)
        self.set(query, embedding)
        return embedding

    def _cleanup_expired(self):
        """Remove expired entries."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp > self._ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Query embedding cache swept {len(expired)} expired entries")

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
