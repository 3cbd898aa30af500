"""
Factory for creating LLM providers and the extractor built on them.
"""

from souvenir.config import LLMConfig
from souvenir.core.extraction.llm_extractor import LLMExtractor
from souvenir.core.llm.base import LLMProvider
from souvenir.core.llm.ollama import OllamaLLM
from souvenir.core.llm.openai import OpenAILLM
from souvenir.models.extraction import PromptTemplates
from souvenir.utils.exceptions import ConfigurationError

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class LLMFactory:
    """Factory for creating LLM providers from configuration."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """
        Create LLM provider from configuration.

        Args:
            config: LLM configuration

        Returns:
            LLM provider instance

        Raises:
            ConfigurationError: If the provider is unsupported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaLLM(
                host=config.base_url or DEFAULT_OLLAMA_URL,
                model=config.model,
                timeout=config.timeout,
            )
        if config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required for the LLM provider")
            return OpenAILLM(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        raise ConfigurationError(f"Unsupported LLM provider: {config.provider}")

    @staticmethod
    def create_extractor(config: LLMConfig, prompts: PromptTemplates | None = None) -> LLMExtractor:
        """Create an LLMExtractor over a freshly built provider."""
        return LLMExtractor(
            LLMFactory.create(config),
            prompts=prompts,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
