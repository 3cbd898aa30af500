"""
tiktoken wrapper used by the chunkers to measure and cut text in tokens.

With ``provider="approximate"`` counting is a character ratio and the
encoding is never loaded; ``tokenize``/``detokenize`` always need it.
"""

from bisect import bisect_right

import tiktoken

from souvenir.config import TokenizerConfig


class Tokenizer:
    """
    Count, encode and decode text with a tiktoken encoding.

    Example:
        tokenizer = Tokenizer(TokenizerConfig(model="cl100k_base"))
        ids = tokenizer.tokenize("Paris is in France")
        assert tokenizer.detokenize(ids) == "Paris is in France"
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def approximate(self) -> bool:
        return self.config.provider == "approximate"

    @property
    def encoder(self) -> tiktoken.Encoding:
        """The tiktoken encoding, fetched on first use."""
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.model)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens, exactly or by estimate for the approximate provider.

        Args:
            text: Text to count tokens for

        Returns:
            Token count (0 for empty text)
        """
        if not text:
            return 0
        if self.approximate:
            return self.estimate_tokens(text)
        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """
        Character-ratio estimate (``len(text) / chars_per_token``).

        Any non-empty text counts as at least one token.

        Args:
            text: Text to estimate tokens for

        Returns:
            Approximate token count
        """
        if not text:
            return 0
        return max(1, int(len(text) / self.config.chars_per_token))

    def tokenize(self, text: str) -> list[int]:
        """
        Encode text into token ids.

        Args:
            text: Text to encode

        Returns:
            Token ids ([] for empty text)
        """
        return self.encoder.encode(text) if text else []

    def detokenize(self, tokens: list[int]) -> str:
        """
        Decode token ids back to text.

        A sequence that ends inside a multi-byte character decodes with
        U+FFFD in its place; use ``char_offsets`` to cut text losslessly.

        Args:
            tokens: Token ids

        Returns:
            Decoded text ("" for no tokens)
        """
        return self.encoder.decode(tokens) if tokens else ""

    def token_bytes(self, token) -> bytes:
        """UTF-8 bytes one token stands for."""
        return self.encoder.decode_single_token_bytes(token)

    def char_offsets(self, text: str) -> list[int]:
        """
        Character offsets of the token boundaries of ``text``.

        A boundary that falls inside a multi-byte character is moved back to
        the start of that character, so ``text[offsets[i]:offsets[j]]`` never
        splits a character.

        Args:
            text: Text to tokenize

        Returns:
            ``len(tokens) + 1`` non-decreasing offsets, from 0 to ``len(text)``
        """
        tokens = self.tokenize(text)

        char_starts = []
        position = 0
        for char in text:
            char_starts.append(position)
            position += len(char.encode("utf-8"))
        total_bytes = position

        offsets = []
        position = 0
        for token in tokens:
            if position < total_bytes:
                offsets.append(bisect_right(char_starts, position) - 1)
            else:
                offsets.append(len(text))
            position += len(self.token_bytes(token))
        offsets.append(len(text))
        return offsets
