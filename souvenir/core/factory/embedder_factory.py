"""
Factory for creating embedder providers.
"""

from souvenir.config import EmbedderConfig
from souvenir.core.embeddings.base import Embedder
from souvenir.core.embeddings.ollama import OllamaEmbedder
from souvenir.core.embeddings.openai import OpenAIEmbedder
from souvenir.utils.exceptions import ConfigurationError

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        The configured dimension is handed to the provider as its declared
        dimension, so it is what produced vectors are checked against.

        Args:
            config: Embedder configuration

        Returns:
            Embedder instance

        Raises:
            ConfigurationError: If the provider is unsupported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url or DEFAULT_OLLAMA_URL,
                model=config.model,
                timeout=config.timeout,
                dimension=config.dimension,
            )
        if config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required for the embedder")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
                dimension=config.dimension,
            )
        raise ConfigurationError(f"Unsupported embedder provider: {config.provider}")

    @staticmethod
    def expected_dimension(embedder: Embedder, config: EmbedderConfig | None = None) -> int | None:
        """
        Dimension produced vectors must have.

        Priority:
        1. From config if provided
        2. From the embedder's declared dimension

        Returns:
            Expected dimension, or None if neither source declares one
        """
        if config and config.dimension:
            return config.dimension
        return embedder.dimension
