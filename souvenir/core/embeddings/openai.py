"""
OpenAI embeddings.

text-embedding-3 models can return shortened vectors: when a dimension
smaller than the model's native size is configured it is sent as the
``dimensions`` request parameter so the API output matches it.
"""

from openai import AsyncOpenAI

from souvenir.core.embeddings.base import Embedder
from souvenir.utils.exceptions import EmbeddingError, ValidationError
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)

NATIVE_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

# Largest input list accepted by one embeddings request
MAX_BATCH_INPUTS = 2048


class OpenAIEmbedder(Embedder):
    """Embedder backed by the OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        dimension: int | None = None,
    ):
        """
        Args:
            api_key: OpenAI API key
            model: Embedding model name
            organization: Optional organization ID
            base_url: Optional OpenAI-compatible endpoint
            timeout: Request timeout in seconds
            dimension: Requested vector length; the model's native size when omitted
        """
        self.model = model
        native = NATIVE_DIMENSIONS.get(model)
        self._dimension = dimension or native
        self._request_options: dict = {}
        if model.startswith("text-embedding-3") and dimension and dimension != native:
            self._request_options["dimensions"] = dimension

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def _create(self, payload: str | list[str], **kwargs):
        try:
            response = await self.client.embeddings.create(
                model=self.model, input=payload, **self._request_options, **kwargs
            )
        except Exception as e:
            count = len(payload) if isinstance(payload, list) else 1
            logger.error(f"OpenAI embedding request failed ({self.model}, {count} inputs): {e}")
            raise EmbeddingError(
                f"OpenAI embedding error: {e}", context={"model": self.model, "inputs": count}
            ) from e

        if not response.data:
            raise EmbeddingError(
                "OpenAI returned empty embedding response", context={"model": self.model}
            )
        return response.data

    async def embed(self, text: str, **kwargs) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        data = await self._create(text, **kwargs)
        return data[0].embedding

    async def embed_batch(
        self, texts: list[str], batch_size: int = MAX_BATCH_INPUTS, **kwargs
    ) -> list[list[float]]:
        """Embed ``texts`` in requests of at most ``batch_size`` inputs, keeping order."""
        if not texts:
            raise ValidationError("Texts list cannot be empty")

        vectors: list[list[float]] = []
        for start in range(0, len(texts), batch_size):
            data = await self._create(texts[start : start + batch_size], **kwargs)
            vectors.extend(item.embedding for item in data)
        return vectors

    async def close(self):
        await self.client.close()
