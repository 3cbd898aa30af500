"""
Ollama embeddings through the ollama-python async client.

Single texts use the ``embeddings`` endpoint; batches use ``embed``, which
accepts a list of inputs and returns one vector per input.
"""

import ollama

from souvenir.core.embeddings.base import Embedder
from souvenir.utils.exceptions import EmbeddingError, ValidationError
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """Embedder for a local Ollama model such as nomic-embed-text or mxbai-embed-large."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
        dimension: int | None = None,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self._dimension = dimension

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    def _error(self, message: str, **context) -> EmbeddingError:
        logger.error(f"{message} ({self.model} @ {self.host})")
        return EmbeddingError(message, context={"model": self.model, "host": self.host, **context})

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Raises:
            ValidationError: If text is blank
            EmbeddingError: If the request fails or the reply has no vector
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)
        except Exception as e:
            raise self._error(f"Ollama embedding error: {e}") from e

        if not response or "embedding" not in response:
            raise self._error("Ollama returned invalid embedding response")
        return list(response["embedding"])

    async def embed_batch(
        self, texts: list[str], batch_size: int = 32, **kwargs
    ) -> list[list[float]]:
        """Embed ``texts`` with one ``embed`` request per ``batch_size`` inputs."""
        if any(not text or not text.strip() for text in texts):
            raise ValidationError("Text cannot be empty")

        vectors: list[list[float]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            try:
                response = await self.client.embed(model=self.model, input=batch, **kwargs)
            except Exception as e:
                raise self._error(f"Ollama batch embedding error: {e}", batch=len(batch)) from e

            embeddings = response["embeddings"] if response else None
            if not embeddings or len(embeddings) != len(batch):
                raise self._error(
                    "Ollama returned a batch of the wrong size",
                    expected=len(batch),
                    actual=len(embeddings or []),
                )
            vectors.extend(list(vector) for vector in embeddings)

        return vectors
