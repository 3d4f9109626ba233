# src/aiorchestrator/cache/__init__.py
"""
Semantic result caching.

Exports:
    - ResultCache: embedding-matched cache of task results
    - CacheLookup, CacheStats, CacheEntry: cache data structures
    - VectorIndex, LinearScanIndex: vector storage seam and reference index
    - cosine_similarity: vector similarity function
"""

from .result_cache import CacheEntry, CacheLookup, CacheStats, ResultCache, canonical_input
from .vector_index import LinearScanIndex, VectorIndex, cosine_similarity

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheStats",
    "LinearScanIndex",
    "ResultCache",
    "VectorIndex",
    "canonical_input",
    "cosine_similarity",
]
