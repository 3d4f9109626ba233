# src/aiorchestrator/embedding/base.py
"""
Abstract Base Class for embedding providers.

The result cache only needs a way to turn the canonical text form of a task
input into a vector. Any provider that satisfies this interface, from the
deterministic hash placeholder to a real semantic model, can be plugged in
without touching the cache or the orchestrator.
"""

import abc
from typing import List


class EmbeddingProvider(abc.ABC):
    """
    Abstract Base Class for text embedding providers.

    Implementations must return vectors of a fixed dimension for a given
    provider instance so stored and query vectors are comparable.
    """

    @property
    def name(self) -> str:
        """Identifier used in logs and error messages."""
        return type(self).__name__

    @abc.abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Generate a vector embedding for a single text string.

        Args:
            text: The input text string to embed.

        Returns:
            A list of floats representing the vector embedding.

        Raises:
            EmbeddingError: If the embedding generation fails.
        """
        pass

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate vector embeddings for several texts.

        Defaults to calling `embed` for each text in order; providers with a
        batch endpoint should override it.
        """
        return [await self.embed(text) for text in texts]
