"""Cosine similarity helpers backed by numpy and scikit-learn."""

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _sk_cosine_similarity

from souvenir.utils.exceptions import ValidationError


def cosine_similarity(embedding1: list[float], embedding2: list[float]) -> float:
    """
    Compute cosine similarity between two embeddings.

    Args:
        embedding1: First embedding vector
        embedding2: Second embedding vector

    Returns:
        Similarity score in [-1, 1]

    Raises:
        ValidationError: If the vectors have different lengths
    """
    if len(embedding1) != len(embedding2):
        raise ValidationError(
            "Vectors must have same length",
            context={"left": len(embedding1), "right": len(embedding2)},
        )

    vec1 = np.array(embedding1, dtype=float).reshape(1, -1)
    vec2 = np.array(embedding2, dtype=float).reshape(1, -1)

    return float(_sk_cosine_similarity(vec1, vec2)[0][0])


def batch_cosine_similarity(
    query_embedding: list[float], embeddings: list[list[float]]
) -> list[float]:
    """
    Compute cosine similarity between a query and multiple embeddings.

    Args:
        query_embedding: Query embedding vector
        embeddings: List of embedding vectors to compare against

    Returns:
        List of similarity scores, same order as ``embeddings``
    """
    if not embeddings:
        return []

    query_vec = np.array(query_embedding, dtype=float).reshape(1, -1)
    embedding_matrix = np.array(embeddings, dtype=float)

    return _sk_cosine_similarity(query_vec, embedding_matrix)[0].tolist()


def pairwise_cosine_similarity(embeddings: list[list[float]]) -> np.ndarray:
    """
    Compute the full pairwise similarity matrix for a set of embeddings.

    Args:
        embeddings: List of equal-length embedding vectors

    Returns:
        (n, n) numpy array of similarity scores
    """
    if not embeddings:
        return np.zeros((0, 0))

    return _sk_cosine_similarity(np.array(embeddings, dtype=float))
