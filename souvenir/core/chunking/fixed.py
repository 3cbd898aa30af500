"""
Fixed-size token window chunking.
"""

from souvenir.core.chunking.base import Chunker


class FixedSizeChunker(Chunker):
    """
    Windows of ``chunk_size`` tokens; the last ``chunk_overlap`` tokens of
    each window start the next one. Ignores document structure.

    Windows are sliced from the input by character offset, never decoded
    from token ids, so a window edge inside a multi-byte character keeps
    that character whole in the following window.
    """

    def _split(self, text: str) -> list[str]:
        offsets = self.tokenizer.char_offsets(text)
        token_count = len(offsets) - 1
        if token_count <= self.chunk_size:
            return [text]

        step = self.chunk_size - self.chunk_overlap
        chunks = []
        for start in range(0, token_count, step):
            end = min(start + self.chunk_size, token_count)
            chunks.append(text[offsets[start] : offsets[end]])
            if end >= token_count:
                break
        return chunks
