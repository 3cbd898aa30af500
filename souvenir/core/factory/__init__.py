"""
Factories for building Souvenir components from configuration.
"""

from souvenir.core.factory.embedder_factory import EmbedderFactory
from souvenir.core.factory.llm_factory import LLMFactory
from souvenir.core.factory.store_factory import StoreFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "StoreFactory",
]
