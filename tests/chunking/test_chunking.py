"""
Tests for chunking strategies.

Tests cover:
1. Fixed-size token windows with overlap
2. Hierarchical splitting (paragraph -> line -> sentence -> word -> character)
3. Small fragment folding
4. Character fallback when the tokenizer is unavailable
5. Policy validation and the chunker factory
"""

import pytest

from souvenir.config import ChunkingConfig, ChunkingMode, TokenizerConfig
from souvenir.core.chunking import FixedSizeChunker, HierarchicalChunker, create_chunker
from souvenir.core.chunking.hierarchical import split_keeping_delimiters
from souvenir.core.tokenizer import Tokenizer
from souvenir.utils.exceptions import ConfigurationError

TEN_WORDS = " ".join(f"w{i}" for i in range(10))


class ByteTokenizer(Tokenizer):
    """One token per UTF-8 byte; decodes like tiktoken, with replacement characters."""

    def tokenize(self, text: str) -> list[int]:
        return list(text.encode("utf-8"))

    def detokenize(self, tokens: list[int]) -> str:
        return bytes(tokens).decode("utf-8", errors="replace")

    def token_bytes(self, token: int) -> bytes:
        return bytes([token])

    def count_tokens(self, text: str) -> int:
        return len(text.encode("utf-8"))


class TestFixedSizeChunker:
    """Tests for fixed token windows."""

    def test_text_that_fits_is_one_chunk(self, word_tokenizer):
        """Test short text comes back unchanged."""
        chunker = FixedSizeChunker(word_tokenizer, chunk_size=20, chunk_overlap=5)
        assert chunker.chunk("Paris is in France.") == ["Paris is in France."]

    def test_windows_overlap(self, word_tokenizer):
        """Test consecutive windows share chunk_overlap tokens."""
        chunker = FixedSizeChunker(word_tokenizer, chunk_size=4, chunk_overlap=1)

        chunks = chunker.chunk(TEN_WORDS)

        assert chunks == ["w0 w1 w2 w3 ", "w3 w4 w5 w6 ", "w6 w7 w8 w9"]

    def test_window_size_bound(self, word_tokenizer):
        """Test no window exceeds chunk_size tokens."""
        chunker = FixedSizeChunker(word_tokenizer, chunk_size=3, chunk_overlap=0)

        chunks = chunker.chunk(TEN_WORDS)

        assert all(word_tokenizer.count_tokens(chunk) <= 3 for chunk in chunks)
        assert "".join(chunks) == TEN_WORDS

    def test_blank_text(self, word_tokenizer):
        """Test empty and whitespace-only text produce no chunks."""
        chunker = FixedSizeChunker(word_tokenizer, chunk_size=4, chunk_overlap=1)
        assert chunker.chunk("") == []
        assert chunker.chunk("   \n ") == []

    def test_with_tiktoken(self):
        """Test fixed chunking with the real tokenizer."""
        tokenizer = Tokenizer()
        chunker = FixedSizeChunker(tokenizer, chunk_size=20, chunk_overlap=5)
        text = "The quick brown fox jumps over the lazy dog. " * 20

        chunks = chunker.chunk(text)

        assert len(chunks) > 1
        assert all(tokenizer.count_tokens(chunk) <= 21 for chunk in chunks)

    def test_multibyte_characters_stay_whole(self):
        """Test windows cutting through an accented character keep it intact."""
        text = "café " * 10
        chunker = FixedSizeChunker(ByteTokenizer(), chunk_size=8, chunk_overlap=0)

        chunks = chunker.chunk(text)

        assert len(chunks) > 1
        assert all("�" not in chunk for chunk in chunks)
        assert "".join(chunks) == text

    def test_multibyte_characters_with_overlap(self):
        """Test overlapping windows over emoji and CJK text never contain broken characters."""
        text = "東京 🌍 Zürich " * 6
        chunker = FixedSizeChunker(ByteTokenizer(), chunk_size=7, chunk_overlap=2)

        chunks = chunker.chunk(text)

        assert all("�" not in chunk for chunk in chunks)
        assert all(chunk in text for chunk in chunks)
        assert chunks[0].startswith("東京")
        assert text.endswith(chunks[-1])

    def test_with_tiktoken_non_ascii(self):
        """Test real token windows over non-ASCII text rejoin to the input."""
        text = "Les élèves visitent la tour Eiffel à Paris. 東京タワー 🗼. " * 10
        chunker = FixedSizeChunker(Tokenizer(), chunk_size=7, chunk_overlap=0)

        chunks = chunker.chunk(text)

        assert "".join(chunks) == text
        assert all("�" not in chunk for chunk in chunks)


class TestHierarchicalChunker:
    """Tests for structure-aware chunking."""

    def test_split_keeping_delimiters(self):
        """Test separators stay attached to the preceding piece."""
        pieces = split_keeping_delimiters("One. Two! Three", (". ", "! ", "? "))
        assert pieces == ["One. ", "Two! ", "Three"]

    def test_prefers_paragraph_boundaries(self, word_tokenizer):
        """Test paragraphs are split before sentences."""
        chunker = HierarchicalChunker(
            word_tokenizer, chunk_size=5, chunk_overlap=0, min_characters_per_chunk=1
        )
        text = "Alpha beta gamma.\n\nDelta epsilon zeta."

        chunks = chunker.chunk(text)

        assert chunks == ["Alpha beta gamma.\n\n", "Delta epsilon zeta."]

    def test_merges_small_pieces_greedily(self, word_tokenizer):
        """Test neighbouring pieces are merged while they fit."""
        chunker = HierarchicalChunker(
            word_tokenizer, chunk_size=4, chunk_overlap=0, min_characters_per_chunk=1
        )
        text = "One.\n\nTwo.\n\nThree four five six."

        chunks = chunker.chunk(text)

        assert chunks == ["One.\n\nTwo.\n\n", "Three four five six."]

    def test_chunks_concatenate_to_input(self, word_tokenizer):
        """Test the chunks reproduce the input exactly."""
        chunker = HierarchicalChunker(word_tokenizer, chunk_size=6, chunk_overlap=0)
        text = (
            "Memory graphs store chunks. They also store entities!\n"
            "Entities are linked by typed relationships.\n\n"
            "Sessions group nodes. Retrieval mixes vectors and graphs? Yes it does."
        )

        chunks = chunker.chunk(text)

        assert "".join(chunks) == text
        assert all(word_tokenizer.count_tokens(chunk) <= 6 for chunk in chunks)

    def test_character_windows_for_unbreakable_text(self):
        """Test text without separators is cut into character windows."""
        tokenizer = Tokenizer(TokenizerConfig(provider="approximate", chars_per_token=1.0))
        chunker = HierarchicalChunker(
            tokenizer, chunk_size=10, chunk_overlap=0, min_characters_per_chunk=1
        )

        chunks = chunker.chunk("x" * 25)

        assert [len(chunk) for chunk in chunks] == [10, 10, 5]

    def test_small_fragment_folds_into_neighbour(self, word_tokenizer):
        """Test a fragment under the character floor is merged when the result fits."""
        chunker = HierarchicalChunker(
            word_tokenizer, chunk_size=5, chunk_overlap=0, min_characters_per_chunk=5
        )
        text = "a b c d e f g.\n\nHi"

        chunks = chunker.chunk(text)

        assert chunks == ["a b c d e ", "f g.\n\nHi"]

    def test_small_fragment_kept_when_nothing_fits(self, word_tokenizer):
        """Test an unmergeable small fragment is kept on its own."""
        chunker = HierarchicalChunker(
            word_tokenizer, chunk_size=5, chunk_overlap=0, min_characters_per_chunk=10
        )
        text = "First sentence has five words. Ok."

        chunks = chunker.chunk(text)

        assert chunks == ["First sentence has five words. ", "Ok."]


class TestFallback:
    """Tests for character chunking when the tokenizer fails."""

    def test_fixed_falls_back_to_characters(self, failing_tokenizer):
        """Test fallback windows are chunk_size characters with overlap."""
        chunker = FixedSizeChunker(failing_tokenizer, chunk_size=10, chunk_overlap=2)
        text = "abcdefghijklmnopqrstuvwxy"

        chunks = chunker.chunk(text)

        assert chunks == ["abcdefghij", "ijklmnopqr", "qrstuvwxy"]

    def test_hierarchical_falls_back_to_characters(self, failing_tokenizer):
        """Test hierarchical chunking degrades the same way."""
        chunker = HierarchicalChunker(failing_tokenizer, chunk_size=10, chunk_overlap=0)

        chunks = chunker.chunk("a" * 30)

        assert chunks == ["a" * 10] * 3


class TestChunkingPolicy:
    """Tests for size/overlap validation and the factory."""

    def test_chunk_size_must_be_positive(self, word_tokenizer):
        """Test chunk_size below one is rejected."""
        with pytest.raises(ConfigurationError):
            FixedSizeChunker(word_tokenizer, chunk_size=0, chunk_overlap=0)

    def test_overlap_must_be_smaller_than_size(self, word_tokenizer):
        """Test overlap equal to the chunk size is rejected."""
        with pytest.raises(ConfigurationError):
            FixedSizeChunker(word_tokenizer, chunk_size=5, chunk_overlap=5)

    def test_negative_overlap_rejected(self, word_tokenizer):
        """Test negative overlap is rejected."""
        with pytest.raises(ConfigurationError):
            HierarchicalChunker(word_tokenizer, chunk_size=5, chunk_overlap=-1)

    def test_config_rejects_overlap(self):
        """Test ChunkingConfig validates overlap against size."""
        with pytest.raises(ValueError, match="chunk_overlap"):
            ChunkingConfig(chunk_size=100, chunk_overlap=100)

    def test_create_fixed_chunker(self, word_tokenizer):
        """Test factory builds a fixed chunker by default."""
        chunker = create_chunker(ChunkingConfig(chunk_size=100, chunk_overlap=10), word_tokenizer)

        assert isinstance(chunker, FixedSizeChunker)
        assert chunker.chunk_size == 100
        assert chunker.chunk_overlap == 10
        assert chunker.tokenizer is word_tokenizer

    def test_create_hierarchical_chunker(self, word_tokenizer):
        """Test factory honours the hierarchical mode."""
        config = ChunkingConfig(mode=ChunkingMode.HIERARCHICAL, min_characters_per_chunk=12)

        chunker = create_chunker(config, word_tokenizer)

        assert isinstance(chunker, HierarchicalChunker)
        assert chunker.min_characters_per_chunk == 12

    def test_create_with_defaults(self):
        """Test factory defaults to a tiktoken tokenizer."""
        chunker = create_chunker()

        assert isinstance(chunker, FixedSizeChunker)
        assert isinstance(chunker.tokenizer, Tokenizer)
