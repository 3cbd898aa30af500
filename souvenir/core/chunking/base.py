"""
Abstract base class for chunking strategies.
"""

from abc import ABC, abstractmethod

from souvenir.config import ChunkingConfig, ChunkingMode
from souvenir.core.tokenizer import Tokenizer
from souvenir.utils.exceptions import ConfigurationError
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)


class Chunker(ABC):
    """
    Abstract base for chunking strategies.

    Responsibilities:
    - Split text into ordered chunks sized in tokens
    - Degrade to character slicing when the tokenizer is unusable
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        min_characters_per_chunk: int = 24,
    ):
        """
        Initialize chunker.

        Args:
            tokenizer: Tokenizer used to measure chunks
            chunk_size: Maximum tokens per chunk
            chunk_overlap: Tokens repeated between consecutive chunks (fixed mode)
            min_characters_per_chunk: Smallest fragment kept on its own (hierarchical mode)

        Raises:
            ConfigurationError: If the size/overlap policy is invalid
        """
        if chunk_size < 1:
            raise ConfigurationError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ConfigurationError(
                "chunk_overlap must be between 0 and chunk_size - 1",
                context={"chunk_size": chunk_size, "chunk_overlap": chunk_overlap},
            )

        self.tokenizer = tokenizer
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_characters_per_chunk = min_characters_per_chunk

    def chunk(self, text: str) -> list[str]:
        """
        Split text into chunks.

        Args:
            text: Text to split

        Returns:
            Ordered list of non-empty chunks ([] for blank text)
        """
        if not text or not text.strip():
            return []

        try:
            chunks = self._split(text)
        except Exception as e:
            logger.warning(f"Tokenizer unavailable, falling back to character chunking: {e}")
            chunks = self.fallback_chunk(text)

        return [chunk for chunk in chunks if chunk]

    def fallback_chunk(self, text: str) -> list[str]:
        """
        Naive fixed-width character slicing.

        Windows are ``chunk_size`` characters, stepping ``chunk_size - chunk_overlap``.
        """
        step = self.chunk_size - self.chunk_overlap
        chunks = []
        for start in range(0, len(text), step):
            chunks.append(text[start : start + self.chunk_size])
            if start + self.chunk_size >= len(text):
                break
        return chunks

    @abstractmethod
    def _split(self, text: str) -> list[str]:
        """Strategy-specific splitting. May raise if the tokenizer fails."""
        pass


def create_chunker(config: ChunkingConfig | None = None, tokenizer: Tokenizer | None = None) -> Chunker:
    """
    Create the chunker for the configured mode.

    Args:
        config: Chunking configuration (defaults if not provided)
        tokenizer: Tokenizer to measure chunks with (default tiktoken tokenizer)

    Returns:
        Chunker instance

    Raises:
        ConfigurationError: If the mode is unknown
    """
    from souvenir.core.chunking.fixed import FixedSizeChunker
    from souvenir.core.chunking.hierarchical import HierarchicalChunker

    config = config or ChunkingConfig()
    strategies: dict[ChunkingMode, type[Chunker]] = {
        ChunkingMode.FIXED: FixedSizeChunker,
        ChunkingMode.HIERARCHICAL: HierarchicalChunker,
    }

    strategy = strategies.get(ChunkingMode(config.mode))
    if strategy is None:
        raise ConfigurationError(f"Unsupported chunking mode: {config.mode}")

    return strategy(
        tokenizer=tokenizer or Tokenizer(),
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        min_characters_per_chunk=config.min_characters_per_chunk,
    )
