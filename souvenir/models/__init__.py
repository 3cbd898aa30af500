"""
Data models for Souvenir.

Core models:
- MemoryChunk: Raw text awaiting processing
- MemoryNode, NodeType: Chunk, entity and summary nodes
- MemoryRelationship, RelationshipType: Weighted directed edges
- MemorySession: Scope grouping nodes through memberships
- Extraction schemas: ExtractedEntity, ExtractedRelationship, ChunkExtraction
- Retrieval models: SearchOptions, SearchResult, GraphPath, FormattedContext
"""

from souvenir.models.extraction import (
    ChunkExtraction,
    EntityExtraction,
    ExtractedEntity,
    ExtractedRelationship,
    PromptTemplates,
    RelationshipExtraction,
    Summarization,
)
from souvenir.models.memory import (
    ENTITY_NODE_TYPES,
    MemoryChunk,
    MemoryNode,
    MemoryRelationship,
    MemorySession,
    NodeType,
    RelationshipType,
)
from souvenir.models.retrieval import (
    AddOptions,
    ContextSource,
    FormattedContext,
    GraphPath,
    GraphRetrievalResult,
    HybridRetrievalResult,
    Neighborhood,
    ProcessingReport,
    ProcessOptions,
    RetrievalStrategy,
    SearchOptions,
    SearchResult,
    TraversalOptions,
)

__all__ = [
    # Memory graph models
    "MemoryChunk",
    "MemoryNode",
    "MemoryRelationship",
    "MemorySession",
    "NodeType",
    "RelationshipType",
    "ENTITY_NODE_TYPES",
    # Extraction models
    "ExtractedEntity",
    "ExtractedRelationship",
    "EntityExtraction",
    "RelationshipExtraction",
    "Summarization",
    "ChunkExtraction",
    "PromptTemplates",
    # Retrieval models
    "RetrievalStrategy",
    "SearchOptions",
    "TraversalOptions",
    "AddOptions",
    "ProcessOptions",
    "SearchResult",
    "Neighborhood",
    "GraphPath",
    "GraphRetrievalResult",
    "HybridRetrievalResult",
    "ContextSource",
    "FormattedContext",
    "ProcessingReport",
]
