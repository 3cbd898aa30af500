"""
Abstract base class for embedding providers.
Turns text into fixed-dimension vectors for similarity search.
"""

from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Responsibilities:
    - Generate vector embeddings for text
    - Batch processing for efficiency
    - Report the fixed dimension of produced vectors
    """

    _dimension: int | None = None

    @property
    def dimension(self) -> int | None:
        """
        Declared embedding dimension, or None when the provider does not know it
        until the first embedding comes back.
        """
        return self._dimension

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If embedding generation fails
        """
        pass

    async def embed_batch(
        self, texts: list[str], batch_size: int = 32, **kwargs
    ) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Default implementation processes sequentially.
        Override for provider-specific batch optimization.

        Args:
            texts: List of texts to embed
            batch_size: Number of texts per batch
            **kwargs: Provider-specific parameters

        Returns:
            List of embedding vectors (same order as input texts)
        """
        return [await self.embed(text, **kwargs) for text in texts]

    async def get_dimension(self) -> int:
        """
        Get the embedding dimension, embedding a sample text once if it is not declared.

        Returns:
            Embedding vector dimension
        """
        if self._dimension is None:
            self._dimension = len(await self.embed("dimension check"))
        return self._dimension

    async def close(self):
        """Close any open connections. Override if the provider holds resources."""
        return None
