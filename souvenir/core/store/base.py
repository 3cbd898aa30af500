"""
Base interface for memory storage.

A store persists chunks, nodes, relationships and session memberships,
and answers the two queries the engine is built on: similarity ranking
over node embeddings and adjacency of a node.
"""

from abc import ABC, abstractmethod

from souvenir.models.memory import MemoryChunk, MemoryNode, MemoryRelationship, MemorySession
from souvenir.models.retrieval import SearchResult


class MemoryStore(ABC):
    """Abstract base class for memory store implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if needed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the backend answers a trivial query."""
        pass

    # ═══════════════════════════════════════════════════════════
    # NODE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_node(self, node: MemoryNode) -> MemoryNode:
        pass

    @abstractmethod
    async def get_node(self, node_id: str) -> MemoryNode | None:
        pass

    @abstractmethod
    async def get_nodes(self, node_ids: list[str]) -> list[MemoryNode]:
        """
        Fetch several nodes.

        Args:
            node_ids: Node identifiers

        Returns:
            Existing nodes, in the order of ``node_ids``; unknown ids are skipped
        """
        pass

    @abstractmethod
    async def get_all_nodes(self, node_types: list[str] | None = None) -> list[MemoryNode]:
        pass

    @abstractmethod
    async def update_node(self, node: MemoryNode) -> MemoryNode:
        """Persist content, embedding and metadata changes; bumps ``updated_at``."""
        pass

    @abstractmethod
    async def delete_node(self, node_id: str) -> bool:
        """
        Delete a node, cascading to its relationships and session memberships.

        Returns:
            True if a node was deleted; unknown ids are not an error
        """
        pass

    @abstractmethod
    async def delete_nodes(self, node_ids: list[str]) -> int:
        """Best-effort bulk delete. Returns the number of nodes removed."""
        pass

    @abstractmethod
    async def find_node_by_content_and_type(self, content: str, node_type: str) -> MemoryNode | None:
        """Deduplication lookup on the exact ``(content, node_type)`` pair."""
        pass

    @abstractmethod
    async def search_by_similarity(
        self,
        embedding: list[float],
        limit: int = 10,
        min_score: float = 0.0,
        node_types: list[str] | None = None,
    ) -> list[SearchResult]:
        """
        Rank embedded nodes by cosine similarity to ``embedding``.

        Args:
            embedding: Query vector
            limit: Maximum number of results
            min_score: Minimum similarity to include
            node_types: Optional node type filter

        Returns:
            Results with score >= min_score, highest score first
        """
        pass

    @abstractmethod
    async def count_nodes(self, node_type: str | None = None) -> int:
        pass

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIP OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_relationship(self, relationship: MemoryRelationship) -> MemoryRelationship:
        """
        Store a relationship.

        Raises:
            ValidationError: If source and target are the same node
            StoreError: If an endpoint does not exist
        """
        pass

    @abstractmethod
    async def get_relationship(self, relationship_id: str) -> MemoryRelationship | None:
        pass

    @abstractmethod
    async def get_relationships_for_node(
        self, node_id: str, relationship_types: list[str] | None = None
    ) -> list[MemoryRelationship]:
        """Relationships with ``node_id`` at either end."""
        pass

    @abstractmethod
    async def get_relationships_among(
        self, node_ids: list[str], relationship_types: list[str] | None = None
    ) -> list[MemoryRelationship]:
        """Relationships whose both endpoints are in ``node_ids``."""
        pass

    @abstractmethod
    async def relationship_exists(
        self, source_id: str, target_id: str, relationship_type: str, either_direction: bool = False
    ) -> bool:
        pass

    @abstractmethod
    async def delete_relationship(self, relationship_id: str) -> bool:
        pass

    @abstractmethod
    async def count_relationships(self, relationship_type: str | None = None) -> int:
        pass

    # ═══════════════════════════════════════════════════════════
    # SESSION OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_session(self, session: MemorySession) -> MemorySession:
        """Create a session; returns the stored one if the id already exists."""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> MemorySession | None:
        pass

    @abstractmethod
    async def add_node_to_session(self, session_id: str, node_id: str) -> None:
        """
        Record membership. Idempotent; creates the session row if it is missing.
        """
        pass

    @abstractmethod
    async def get_nodes_in_session(
        self,
        session_id: str,
        node_types: list[str] | None = None,
        limit: int | None = None,
    ) -> list[MemoryNode]:
        """Session members, most recently added first."""
        pass

    @abstractmethod
    async def get_session_node_ids(self, session_id: str) -> set[str]:
        pass

    # ═══════════════════════════════════════════════════════════
    # CHUNK OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_chunk(self, chunk: MemoryChunk) -> MemoryChunk:
        pass

    @abstractmethod
    async def get_chunk(self, chunk_id: str) -> MemoryChunk | None:
        pass

    @abstractmethod
    async def get_unprocessed_chunks(
        self, session_id: str | None = None, limit: int | None = None
    ) -> list[MemoryChunk]:
        """Unprocessed chunks in insertion order, optionally for one session."""
        pass

    @abstractmethod
    async def count_unprocessed_chunks(self, session_id: str | None = None) -> int:
        pass

    @abstractmethod
    async def claim_unprocessed_chunks(
        self,
        claim_id: str,
        session_id: str | None = None,
        limit: int = 10,
        claim_timeout: float = 300.0,
    ) -> list[MemoryChunk]:
        """
        Atomically take ownership of up to ``limit`` unprocessed chunks.

        Chunks claimed by another run are skipped unless that claim is older
        than ``claim_timeout`` seconds.

        Args:
            claim_id: Token identifying the processing run
            session_id: Only claim chunks of this session
            limit: Maximum chunks to claim
            claim_timeout: Age in seconds after which a claim is abandoned

        Returns:
            The claimed chunks, in insertion order
        """
        pass

    @abstractmethod
    async def release_chunks(self, chunk_ids: list[str]) -> None:
        """Drop claims so a later run can retry the chunks."""
        pass

    @abstractmethod
    async def mark_chunk_processed(self, chunk_id: str) -> None:
        """Flag a chunk processed and clear its claim."""
        pass
