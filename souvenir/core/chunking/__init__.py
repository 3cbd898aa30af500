"""
Chunking strategies.

Supported modes:
- fixed: token windows with overlap
- hierarchical: recursive paragraph / line / sentence / word / character splitting
"""

from souvenir.config import ChunkingConfig, ChunkingMode
from souvenir.core.chunking.base import Chunker, create_chunker
from souvenir.core.chunking.fixed import FixedSizeChunker
from souvenir.core.chunking.hierarchical import HierarchicalChunker

__all__ = [
    "Chunker",
    "ChunkingConfig",
    "ChunkingMode",
    "FixedSizeChunker",
    "HierarchicalChunker",
    "create_chunker",
]
