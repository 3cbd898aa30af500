"""
Embedding providers.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from souvenir.core.embeddings.base import Embedder
from souvenir.core.embeddings.ollama import OllamaEmbedder
from souvenir.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
