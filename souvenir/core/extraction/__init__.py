"""
Entity / relationship extraction and summarization.
"""

from souvenir.core.extraction.base import Extractor
from souvenir.core.extraction.llm_extractor import LLMExtractor

__all__ = ["Extractor", "LLMExtractor"]
