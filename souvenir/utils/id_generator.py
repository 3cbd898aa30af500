"""
ID generation utilities for Souvenir.

Provides consistent ID generation for all stored entity types:
- Nodes: node_xxx
- Relationships: rel_xxx
- Chunks: chunk_xxx
- Sessions: session_xxx
- Processing claims: claim_xxx
"""

from uuid import uuid4


def generate_node_id() -> str:
    """
    Generate unique Node ID.

    Returns:
        ID in format "node_xxx" where xxx is 12 hex characters
    """
    return f"node_{uuid4().hex[:12]}"


def generate_relationship_id() -> str:
    """
    Generate unique Relationship ID.

    Returns:
        ID in format "rel_xxx" where xxx is 12 hex characters
    """
    return f"rel_{uuid4().hex[:12]}"


def generate_chunk_id() -> str:
    """
    Generate unique Chunk ID.

    Returns:
        ID in format "chunk_xxx" where xxx is 12 hex characters
    """
    return f"chunk_{uuid4().hex[:12]}"


def generate_session_id() -> str:
    """
    Generate unique Session ID.

    Returns:
        ID in format "session_xxx" where xxx is 12 hex characters
    """
    return f"session_{uuid4().hex[:12]}"


def generate_claim_id() -> str:
    """
    Generate a processing-run claim token.

    Returns:
        ID in format "claim_xxx" where xxx is 12 hex characters
    """
    return f"claim_{uuid4().hex[:12]}"
