"""
LLM providers used by the extractor.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from souvenir.core.llm.base import LLMProvider
from souvenir.core.llm.ollama import OllamaLLM
from souvenir.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
]
