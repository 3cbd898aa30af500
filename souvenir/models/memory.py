"""
Memory graph models: nodes, relationships, sessions and raw chunks.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class NodeType(str, Enum):
    """Well-known node types. Node types are free-form; these are the ones the engine relies on."""

    # Source content
    CHUNK = "chunk"  # Raw text chunk turned into a node
    SUMMARY = "summary"  # Generated summary (session / subgraph)

    # Extracted entities
    ENTITY = "entity"
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    CONCEPT = "concept"
    EVENT = "event"
    TECHNOLOGY = "technology"


# Seed types for graph-completion retrieval
ENTITY_NODE_TYPES: tuple[str, ...] = (
    NodeType.ENTITY.value,
    NodeType.PERSON.value,
    NodeType.ORGANIZATION.value,
    NodeType.LOCATION.value,
    NodeType.CONCEPT.value,
    NodeType.EVENT.value,
    NodeType.TECHNOLOGY.value,
)


class RelationshipType(str, Enum):
    """Well-known relationship types. Extracted relationships may use any label."""

    CONTAINS = "contains"  # Chunk node -> entity node
    SIMILAR_TO = "similar_to"  # Embedding similarity within a session
    SUMMARIZES = "summarizes"  # Summary node -> source node
    RELATED_TO = "related_to"  # Generic extracted relationship


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class MemoryNode(BaseModel):
    """
    A unit of memory: a raw chunk, an extracted entity, or a generated summary.

    Entity-typed nodes are unique on (content, node_type); the engine looks
    them up before inserting.
    """

    id: str = Field(..., description="Unique node ID (node_xxx)")
    content: str = Field(..., description="Node text")
    embedding: list[float] | None = Field(default=None, description="Vector embedding")
    node_type: str = Field(..., description="Node kind, e.g. chunk, summary, person")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    @field_validator("node_type", mode="before")
    @classmethod
    def coerce_node_type(cls, value: Any) -> Any:
        return _enum_value(value)

    @property
    def has_embedding(self) -> bool:
        """True when the node carries a non-empty embedding."""
        return bool(self.embedding)


class MemoryRelationship(BaseModel):
    """Directed, weighted, typed edge between two nodes. Immutable once stored."""

    id: str = Field(..., description="Unique relationship ID (rel_xxx)")
    source_id: str = Field(..., description="Source node ID")
    target_id: str = Field(..., description="Target node ID")
    relationship_type: str = Field(..., description="Free-form relationship label")
    weight: float = Field(default=1.0, ge=0.0, le=1.0, description="Confidence weight (0-1)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")

    @field_validator("relationship_type", mode="before")
    @classmethod
    def coerce_relationship_type(cls, value: Any) -> Any:
        return _enum_value(value)

    @model_validator(mode="after")
    def check_no_self_loop(self) -> "MemoryRelationship":
        if self.source_id == self.target_id:
            raise ValueError("Relationship source and target must differ")
        return self

    def other_end(self, node_id: str) -> str:
        """Return the endpoint that is not ``node_id``."""
        return self.target_id if self.source_id == node_id else self.source_id


class MemorySession(BaseModel):
    """Logical scope (e.g. one conversation) grouping nodes through memberships."""

    id: str = Field(..., description="Session ID")
    session_name: str | None = Field(default=None, description="Optional display name")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class MemoryChunk(BaseModel):
    """
    Raw text segment awaiting processing.

    The owning session, if any, lives in ``metadata["session_id"]``.
    """

    id: str = Field(..., description="Unique chunk ID (chunk_xxx)")
    content: str = Field(..., description="Chunk text")
    chunk_index: int = Field(..., ge=0, description="Position within the added text")
    source_identifier: str | None = Field(default=None, description="Where the text came from")
    metadata: dict[str, Any] = Field(default_factory=dict)
    processed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def session_id(self) -> str | None:
        return self.metadata.get("session_id")
