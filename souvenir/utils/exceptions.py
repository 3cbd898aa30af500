"""
Custom exception hierarchy for Souvenir.

Provides structured error types for better error handling and debugging.
All exceptions inherit from SouvenirError for easy catching.
"""


class SouvenirError(Exception):
    """
    Base exception for all Souvenir errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize Souvenir error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(SouvenirError):
    """
    Store operation errors.
    Raised when the persistence backend fails or rejects an operation.
    """

    pass


class ValidationError(SouvenirError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    pass


class NotFoundError(SouvenirError):
    """
    Resource not found errors.
    Raised when a requested resource (node, session, chunk) doesn't exist.
    """

    pass


class ConfigurationError(SouvenirError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class EmbeddingDimensionError(ConfigurationError):
    """
    Embedding dimension mismatch.
    Raised when the embedder returns vectors whose length disagrees with
    the configured dimension. Fatal: the configuration must be fixed.
    """

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, but got {actual}. "
            "Update embedder.dimension to match your embedding model's output.",
            context={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class EmbeddingError(SouvenirError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class LLMError(SouvenirError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass


class ExtractionError(SouvenirError):
    """
    Extraction errors.
    Raised by extractors that cannot produce a usable result. The engine
    treats them as a per-chunk degradation.
    """

    pass
