"""
Retrieval, traversal and processing option/result models.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from souvenir.models.memory import MemoryNode, MemoryRelationship


class RetrievalStrategy(str, Enum):
    """Available retrieval strategies."""

    VECTOR = "vector"  # Embedding similarity over nodes
    GRAPH_NEIGHBORHOOD = "graph-neighborhood"  # Vector seeds + 1-hop neighborhood
    GRAPH_COMPLETION = "graph-completion"  # Entity seeds + 2-hop triplets
    GRAPH_SUMMARY = "graph-summary"  # Summary seeds + source neighborhoods
    HYBRID = "hybrid"  # Vector and graph-completion merged


class SearchOptions(BaseModel):
    """Options for searching memory."""

    session_id: str | None = None
    node_types: list[str] | None = None
    limit: int | None = Field(default=None, ge=1, description="Seed / result count")
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)
    include_relationships: bool = False
    relationship_types: list[str] | None = None
    strategy: RetrievalStrategy = RetrievalStrategy.VECTOR
    top_k: int | None = Field(default=None, ge=1, description="Final result cap")

    def result_cap(self, default: int) -> int:
        """Final truncation size: top_k, else limit, else ``default``."""
        return self.top_k or self.limit or default


class TraversalOptions(BaseModel):
    """Graph traversal options."""

    max_depth: int | None = Field(default=None, ge=0)
    relationship_types: list[str] | None = None
    node_types: list[str] | None = None


class AddOptions(BaseModel):
    """Options for adding text to memory."""

    source_identifier: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None


class ProcessOptions(BaseModel):
    """Options for turning pending chunks into graph nodes."""

    extract_entities: bool = True
    extract_relationships: bool = True
    generate_embeddings: bool = True
    summarize_chunks: bool = True
    # Session summary node; None: use processing config
    generate_summaries: bool | None = None
    session_id: str | None = None
    entity_prompt: str | None = None
    relationship_prompt: str | None = None


class SearchResult(BaseModel):
    """Node with its relevance score."""

    node: MemoryNode
    score: float
    relationships: list[MemoryRelationship] = Field(default_factory=list)


class Neighborhood(BaseModel):
    """Nodes and relationships reachable from a seed within a depth bound."""

    nodes: list[MemoryNode] = Field(default_factory=list)
    relationships: list[MemoryRelationship] = Field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}


class GraphPath(BaseModel):
    """Path between two nodes."""

    nodes: list[MemoryNode]
    relationships: list[MemoryRelationship]
    total_weight: float

    @property
    def length(self) -> int:
        """Number of relationships on the path."""
        return len(self.relationships)


class GraphRetrievalResult(BaseModel):
    """Graph retrieval result with triplets formatted for an LLM."""

    node: MemoryNode
    score: float
    neighborhood: Neighborhood = Field(default_factory=Neighborhood)
    formatted_triplets: str | None = None

    def to_search_result(self) -> SearchResult:
        return SearchResult(
            node=self.node, score=self.score, relationships=self.neighborhood.relationships
        )


class HybridRetrievalResult(BaseModel):
    """Both legs of hybrid retrieval plus their deduplicated merge."""

    vector_results: list[SearchResult] = Field(default_factory=list)
    graph_results: list[GraphRetrievalResult] = Field(default_factory=list)
    merged: list[SearchResult] = Field(default_factory=list)


class ContextSource(BaseModel):
    """Node that contributed to a formatted context."""

    node_id: str
    score: float


class FormattedContext(BaseModel):
    """Context formatted for LLM consumption."""

    type: Literal["text", "graph", "hybrid"]
    content: str
    sources: list[ContextSource] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProcessingReport(BaseModel):
    """Outcome of one process_all run."""

    processed_chunk_ids: list[str] = Field(default_factory=list)
    failed_chunk_ids: list[str] = Field(default_factory=list)
    node_ids: list[str] = Field(default_factory=list)
    similarity_edges: int = 0
    summary_node_id: str | None = None

    @property
    def processed_count(self) -> int:
        return len(self.processed_chunk_ids)

    def merge(self, other: "ProcessingReport") -> None:
        """Fold another run's outcome into this report."""
        self.processed_chunk_ids.extend(other.processed_chunk_ids)
        self.failed_chunk_ids.extend(other.failed_chunk_ids)
        self.node_ids.extend(other.node_ids)
        self.similarity_edges += other.similarity_edges
        self.summary_node_id = other.summary_node_id or self.summary_node_id
