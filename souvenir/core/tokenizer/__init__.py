"""
Tokenizer module for token counting.

Provides accurate token counting using tiktoken with a character-ratio
approximation. Used by the chunkers to measure chunk sizes in tokens.
"""

from souvenir.config import TokenizerConfig
from souvenir.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer", "TokenizerConfig"]
