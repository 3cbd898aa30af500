"""
Hierarchical (recursive) chunking.

Splits at decreasing granularity until every piece fits in ``chunk_size``
tokens, then greedily re-merges neighbours. Delimiters stay attached to
the preceding piece so the chunks concatenate back to the input.
"""

import re

from souvenir.core.chunking.base import Chunker

# Paragraph -> line -> sentence -> word; below that, character windows
SEPARATOR_LEVELS: tuple[tuple[str, ...], ...] = (
    ("\n\n",),
    ("\n",),
    (". ", "! ", "? "),
    (" ",),
)


def split_keeping_delimiters(text: str, separators: tuple[str, ...]) -> list[str]:
    """Split ``text`` on any separator, keeping each separator at the end of its piece."""
    pattern = "(" + "|".join(re.escape(sep) for sep in separators) + ")"
    parts = re.split(pattern, text)

    pieces: list[str] = []
    for i in range(0, len(parts), 2):
        piece = parts[i]
        if i + 1 < len(parts):
            piece += parts[i + 1]
        if piece:
            pieces.append(piece)
    return pieces


class HierarchicalChunker(Chunker):
    """Structure-aware chunker: paragraph, line, sentence, word, then character."""

    def _split(self, text: str) -> list[str]:
        pieces = self._split_recursive(text, 0)
        return self._fold_small_fragments(pieces)

    def _fits(self, text: str) -> bool:
        return self.tokenizer.count_tokens(text) <= self.chunk_size

    def _split_recursive(self, text: str, level: int) -> list[str]:
        if self._fits(text):
            return [text]
        if level >= len(SEPARATOR_LEVELS):
            return self._character_windows(text)

        parts = split_keeping_delimiters(text, SEPARATOR_LEVELS[level])
        if len(parts) <= 1:
            return self._split_recursive(text, level + 1)

        chunks: list[str] = []
        current = ""
        for part in parts:
            if not self._fits(part):
                if current:
                    chunks.append(current)
                    current = ""
                chunks.extend(self._split_recursive(part, level + 1))
                continue

            candidate = current + part
            if current and not self._fits(candidate):
                chunks.append(current)
                current = part
            else:
                current = candidate

        if current:
            chunks.append(current)
        return chunks

    def _character_windows(self, text: str) -> list[str]:
        windows = []
        start = 0
        while start < len(text):
            end = min(len(text), start + self.chunk_size)
            while end - start > 1 and not self._fits(text[start:end]):
                end = start + (end - start) // 2
            windows.append(text[start:end])
            start = end
        return windows

    def _is_small(self, text: str) -> bool:
        return len(text.strip()) < self.min_characters_per_chunk

    def _fold_small_fragments(self, chunks: list[str]) -> list[str]:
        """Fold fragments under the character floor into a neighbour when the result still fits."""
        result: list[str] = []
        pending = ""

        for chunk in chunks:
            if pending:
                if self._fits(pending + chunk):
                    chunk = pending + chunk
                else:
                    result.append(pending)
                pending = ""

            if not self._is_small(chunk):
                result.append(chunk)
            elif result and self._fits(result[-1] + chunk):
                result[-1] += chunk
            else:
                pending = chunk

        if pending:
            if result and self._fits(result[-1] + pending):
                result[-1] += pending
            else:
                result.append(pending)

        return result
