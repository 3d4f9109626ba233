# src/aiorchestrator/embedding/__init__.py
"""
Embedding providers for the semantic result cache.
"""

from .base import EmbeddingProvider
from .hashing import HashEmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "HashEmbeddingProvider",
]
