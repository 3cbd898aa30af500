"""Souvenir: hybrid graph/vector memory for conversational agents."""

from souvenir.config import Config
from souvenir.services.memory_engine import MemoryEngine

__all__ = ["Config", "MemoryEngine"]

__version__ = "0.1.0"
