# src/aiorchestrator/embedding/hashing.py
"""
Deterministic hash embedding.

A placeholder provider with no semantic quality: the same text always maps
to the same vector, so exact repeats hit the cache, but unrelated texts can
collide whenever their character codes sum to the same value. Swap in a real
provider for semantic matching.
"""

import math
from typing import List

from ..exceptions import EmbeddingError
from .base import EmbeddingProvider

DEFAULT_DIMENSION = 768


class HashEmbeddingProvider(EmbeddingProvider):
    """
    Embeds text as ``v[i] = sin(h * (i + 1)) * cos(h / (i + 1))``, where ``h``
    is the sum of the text's character code points.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension < 1:
            raise ValueError("dimension must be at least 1")
        self.dimension = dimension

    async def embed(self, text: str) -> List[float]:
        if not isinstance(text, str):
            raise EmbeddingError(self.name, f"Expected text, got {type(text).__name__}")
        h = sum(ord(c) for c in text)
        return [math.sin(h * (i + 1)) * math.cos(h / (i + 1)) for i in range(self.dimension)]
