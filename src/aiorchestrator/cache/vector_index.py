# src/aiorchestrator/cache/vector_index.py
"""
Vector similarity primitives for the result cache.

`VectorIndex` is the storage seam: the cache only adds, removes and
searches vectors by key, so the reference linear scan can later be swapped
for an approximate nearest-neighbour index without changing cache logic.
"""

from __future__ import annotations

import abc
import logging
import math
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Similarity Functions
# =============================================================================


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns 0.0 for vectors of different length or when either vector has
    zero magnitude. Identical non-zero vectors always give exactly 1.0.
    """
    if len(a) != len(b) or not a:
        return 0.0

    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    if list(a) == list(b):
        return 1.0

    dot_product = sum(x * y for x, y in zip(a, b))
    similarity = dot_product / math.sqrt(norm_a * norm_b)
    return max(-1.0, min(1.0, similarity))


# =============================================================================
# Index Implementations
# =============================================================================


class VectorIndex(abc.ABC):
    """Keyed store of vectors supporting best-match similarity search."""

    @abc.abstractmethod
    def add(self, key: str, vector: List[float]) -> None:
        """Insert or replace the vector stored under `key`."""
        pass

    @abc.abstractmethod
    def remove(self, key: str) -> bool:
        """Remove `key`; returns False if it was not present."""
        pass

    @abc.abstractmethod
    def search(self, vector: List[float], threshold: float) -> Optional[Tuple[str, float]]:
        """
        Find the stored vector most similar to `vector`.

        Returns:
            ``(key, similarity)`` for the best match whose similarity is at
            least `threshold`, or None when nothing qualifies.
        """
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        pass

    @abc.abstractmethod
    def __len__(self) -> int:
        pass


class LinearScanIndex(VectorIndex):
    """
    Reference index that compares the query against every stored vector.

    Among equally similar matches the earliest inserted key wins.
    """

    def __init__(self) -> None:
        self._vectors: Dict[str, List[float]] = OrderedDict()

    def add(self, key: str, vector: List[float]) -> None:
        self._vectors[key] = list(vector)

    def remove(self, key: str) -> bool:
        return self._vectors.pop(key, None) is not None

    def search(self, vector: List[float], threshold: float) -> Optional[Tuple[str, float]]:
        best: Optional[Tuple[str, float]] = None
        for key, stored in self._vectors.items():
            similarity = cosine_similarity(vector, stored)
            if similarity >= threshold and (best is None or similarity > best[1]):
                best = (key, similarity)
        return best

    def clear(self) -> None:
        self._vectors.clear()

    def __len__(self) -> int:
        return len(self._vectors)
