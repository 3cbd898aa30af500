"""Utility modules for Souvenir."""

from souvenir.utils.exceptions import (
    ConfigurationError,
    EmbeddingDimensionError,
    EmbeddingError,
    ExtractionError,
    LLMError,
    NotFoundError,
    SouvenirError,
    StoreError,
    ValidationError,
)
from souvenir.utils.id_generator import (
    generate_chunk_id,
    generate_claim_id,
    generate_node_id,
    generate_relationship_id,
    generate_session_id,
)
from souvenir.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_node_id",
    "generate_relationship_id",
    "generate_chunk_id",
    "generate_session_id",
    "generate_claim_id",
    # Exceptions
    "SouvenirError",
    "StoreError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "EmbeddingDimensionError",
    "EmbeddingError",
    "LLMError",
    "ExtractionError",
]
