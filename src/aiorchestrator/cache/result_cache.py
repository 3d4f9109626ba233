# src/aiorchestrator/cache/result_cache.py
"""
Semantic result cache.

Stores successful task results keyed by an embedding of the task input and
serves them again for later tasks whose input embeds close enough. A lookup
is a hit when the best cosine similarity is at or above the configured
threshold (0.95 by default).

The cache never fails a task: embedding errors on lookup degrade to a miss,
and embedding errors on store simply skip caching.

Usage:
    cache = ResultCache(HashEmbeddingProvider())

    lookup = await cache.search(task)
    if lookup.hit:
        return lookup.result

    result = await run_backend(task)
    await cache.store(task, result)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..embedding.base import EmbeddingProvider
from ..models import Task, TaskResult
from .vector_index import LinearScanIndex, VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.95
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_TTL_SECONDS = 24 * 60 * 60


# =============================================================================
# Type Definitions
# =============================================================================


@dataclass
class CacheEntry:
    """A cached task result and the embedding it was stored under."""

    key: str
    embedding: List[float]
    result: TaskResult
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return (now - self.created_at) > self.ttl_seconds


@dataclass
class CacheLookup:
    """Outcome of a cache search. `result` is None on a miss."""

    similarity: float = 0.0
    result: Optional[TaskResult] = None
    key: Optional[str] = None

    @property
    def hit(self) -> bool:
        return self.result is not None


@dataclass
class CacheStats:
    """Cache statistics."""

    entries: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    embedding_failures: int = 0
    similarity_sum: float = field(default=0.0, repr=False)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def avg_similarity_on_hit(self) -> float:
        return self.similarity_sum / self.hits if self.hits else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": self.entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "embedding_failures": self.embedding_failures,
            "hit_rate": self.hit_rate,
            "avg_similarity_on_hit": self.avg_similarity_on_hit,
        }


def canonical_input(value: Any) -> str:
    """Serialize a task input to JSON with sorted keys, so key order never changes the embedding."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


# =============================================================================
# Result Cache
# =============================================================================


class ResultCache:
    """
    Approximate cache of task results, matched by input embedding.

    Args:
        embedding_provider: Turns canonical task inputs into vectors.
        index: Vector index holding stored embeddings (linear scan by default).
        threshold: Minimum cosine similarity for a hit.
        max_entries: Entries kept before the oldest is evicted.
        ttl_seconds: Lifetime of a stored result.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        index: Optional[VectorIndex] = None,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.embedding_provider = embedding_provider
        self.index = index if index is not None else LinearScanIndex()
        self.threshold = threshold
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._stats = CacheStats()
        self._lock = asyncio.Lock()

    async def _embed(self, task: Task) -> Optional[List[float]]:
        try:
            return await self.embedding_provider.embed(canonical_input(task.input))
        except Exception as e:
            self._stats.embedding_failures += 1
            logger.warning(f"Failed to embed input of task {task.id} with {self.embedding_provider.name}: {e}")
            return None

    async def search(self, task: Task, threshold: Optional[float] = None) -> CacheLookup:
        """
        Look up a stored result for an input similar to `task.input`.

        Args:
            task: The task being processed.
            threshold: Overrides the cache-wide similarity threshold.

        Returns:
            A CacheLookup; `lookup.hit` tells whether a result was found.
        """
        limit = self.threshold if threshold is None else threshold
        query = await self._embed(task)
        if query is None:
            self._stats.misses += 1
            return CacheLookup()

        async with self._lock:
            self._purge_expired()
            match = self.index.search(query, limit)
            if match is not None:
                key, similarity = match
                entry = self._entries.get(key)
                if entry is not None:
                    self._stats.hits += 1
                    self._stats.similarity_sum += similarity
                    logger.debug(f"Cache hit for task {task.id} (similarity={similarity:.4f}, key={key})")
                    return CacheLookup(similarity=similarity, result=entry.result, key=key)

        self._stats.misses += 1
        return CacheLookup()

    async def store(self, task: Task, result: TaskResult) -> bool:
        """
        Cache `result` under the embedding of `task.input`.

        Returns:
            True if the result was stored, False if embedding failed.
        """
        embedding = await self._embed(task)
        if embedding is None:
            return False

        async with self._lock:
            if task.id in self._entries:
                self._remove(task.id)
            while len(self._entries) >= self.max_entries:
                oldest_key = next(iter(self._entries))
                self._remove(oldest_key)
                self._stats.evictions += 1
                logger.debug(f"Evicted oldest cache entry {oldest_key}")

            self._entries[task.id] = CacheEntry(
                key=task.id,
                embedding=embedding,
                result=result,
                created_at=self._clock(),
                ttl_seconds=self.ttl_seconds,
            )
            self.index.add(task.id, embedding)
            self._stats.entries = len(self._entries)

        logger.debug(f"Cached result of task {task.id}")
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            self._stats.entries = len(self._entries)
            return True

    async def clear(self) -> int:
        """Drop every entry; counters are kept. Returns the number removed."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self.index.clear()
            self._stats.entries = 0
        logger.info(f"Result cache cleared ({count} entries)")
        return count

    def stats(self) -> CacheStats:
        self._stats.entries = len(self._entries)
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        self.index.remove(key)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
        if expired:
            self._stats.expirations += len(expired)
            self._stats.entries = len(self._entries)
            logger.debug(f"Purged {len(expired)} expired cache entries")
