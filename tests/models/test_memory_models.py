"""
Tests for memory, extraction and retrieval models.

Test Organization:
1. Graph models: MemoryNode, MemoryRelationship, MemorySession, MemoryChunk
2. Option models: SearchOptions, TraversalOptions, ProcessOptions
3. Result models: GraphPath, Neighborhood, ProcessingReport
4. Extraction models: structured output schemas
"""

import pytest
from pydantic import ValidationError

from souvenir.models import (
    ENTITY_NODE_TYPES,
    ChunkExtraction,
    EntityExtraction,
    ExtractedEntity,
    ExtractedRelationship,
    GraphPath,
    GraphRetrievalResult,
    MemoryChunk,
    MemoryNode,
    MemoryRelationship,
    MemorySession,
    Neighborhood,
    NodeType,
    ProcessingReport,
    RelationshipType,
    RetrievalStrategy,
    SearchOptions,
    TraversalOptions,
)


class TestMemoryNode:
    """Tests for MemoryNode."""

    def test_creation_minimal(self):
        """Test node creation with required fields."""
        node = MemoryNode(id="node_001", content="Paris", node_type="location")

        assert node.embedding is None
        assert node.metadata == {}
        assert node.has_embedding is False

    def test_enum_node_type_coerced(self):
        """Test NodeType members are stored as plain strings."""
        node = MemoryNode(id="node_001", content="text", node_type=NodeType.CHUNK)

        assert node.node_type == "chunk"
        assert node.model_dump()["node_type"] == "chunk"

    def test_has_embedding(self):
        """Test empty embeddings do not count."""
        assert MemoryNode(id="n", content="x", node_type="entity", embedding=[0.1]).has_embedding
        assert not MemoryNode(id="n", content="x", node_type="entity", embedding=[]).has_embedding

    def test_free_form_types(self):
        """Test node types outside the enum are accepted."""
        node = MemoryNode(id="n", content="Rust", node_type="programming_language")
        assert node.node_type == "programming_language"

    def test_entity_types(self):
        """Test chunk and summary are not entity seed types."""
        assert "location" in ENTITY_NODE_TYPES
        assert "chunk" not in ENTITY_NODE_TYPES
        assert "summary" not in ENTITY_NODE_TYPES


class TestMemoryRelationship:
    """Tests for MemoryRelationship."""

    def test_creation(self):
        """Test relationship defaults."""
        rel = MemoryRelationship(
            id="rel_001",
            source_id="node_a",
            target_id="node_b",
            relationship_type=RelationshipType.CONTAINS,
        )

        assert rel.relationship_type == "contains"
        assert rel.weight == 1.0

    def test_self_loop_rejected(self):
        """Test source and target must differ."""
        with pytest.raises(ValidationError, match="must differ"):
            MemoryRelationship(
                id="rel_001", source_id="node_a", target_id="node_a", relationship_type="x"
            )

    @pytest.mark.parametrize("weight", [-0.1, 1.5])
    def test_weight_bounds(self, weight):
        """Test weights outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            MemoryRelationship(
                id="rel_001",
                source_id="node_a",
                target_id="node_b",
                relationship_type="x",
                weight=weight,
            )

    def test_other_end(self):
        """Test other_end from either side."""
        rel = MemoryRelationship(
            id="rel_001", source_id="node_a", target_id="node_b", relationship_type="x"
        )

        assert rel.other_end("node_a") == "node_b"
        assert rel.other_end("node_b") == "node_a"


class TestSessionAndChunk:
    """Tests for MemorySession and MemoryChunk."""

    def test_session_defaults(self):
        session = MemorySession(id="session_1")

        assert session.session_name is None
        assert session.metadata == {}

    def test_chunk_session_from_metadata(self):
        """Test the chunk's session comes from its metadata."""
        chunk = MemoryChunk(
            id="chunk_1", content="text", chunk_index=0, metadata={"session_id": "s1"}
        )

        assert chunk.session_id == "s1"
        assert chunk.processed is False
        assert MemoryChunk(id="chunk_2", content="t", chunk_index=1).session_id is None

    def test_chunk_index_non_negative(self):
        with pytest.raises(ValidationError):
            MemoryChunk(id="chunk_1", content="text", chunk_index=-1)


class TestOptions:
    """Tests for option models."""

    def test_search_defaults(self):
        options = SearchOptions()

        assert options.strategy == RetrievalStrategy.VECTOR
        assert options.result_cap(10) == 10

    def test_result_cap_priority(self):
        """Test top_k beats limit beats the default."""
        assert SearchOptions(limit=5).result_cap(10) == 5
        assert SearchOptions(limit=5, top_k=2).result_cap(10) == 2

    def test_strategy_from_string(self):
        assert SearchOptions(strategy="graph-completion").strategy == RetrievalStrategy.GRAPH_COMPLETION

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError):
            SearchOptions(strategy="keyword")

    def test_traversal_depth_non_negative(self):
        with pytest.raises(ValidationError):
            TraversalOptions(max_depth=-1)


class TestResults:
    """Tests for result models."""

    def test_path_length(self):
        a = MemoryNode(id="a", content="A", node_type="entity")
        b = MemoryNode(id="b", content="B", node_type="entity")
        rel = MemoryRelationship(id="r", source_id="a", target_id="b", relationship_type="x", weight=0.4)

        path = GraphPath(nodes=[a, b], relationships=[rel], total_weight=0.4)

        assert path.length == 1

    def test_graph_result_to_search_result(self):
        """Test graph results carry their neighborhood relationships."""
        a = MemoryNode(id="a", content="A", node_type="entity")
        rel = MemoryRelationship(id="r", source_id="a", target_id="b", relationship_type="x")
        result = GraphRetrievalResult(
            node=a, score=0.7, neighborhood=Neighborhood(nodes=[a], relationships=[rel])
        )

        converted = result.to_search_result()

        assert converted.score == 0.7
        assert converted.relationships == [rel]

    def test_processing_report(self):
        report = ProcessingReport(processed_chunk_ids=["chunk_1", "chunk_2"])

        assert report.processed_count == 2
        assert report.failed_chunk_ids == []
        assert report.summary_node_id is None


class TestExtractionModels:
    """Tests for structured output schemas."""

    def test_entity_extra_fields_ignored(self):
        """Test unexpected LLM fields are dropped."""
        entity = ExtractedEntity.model_validate(
            {"text": "Paris", "type": "location", "confidence": 0.9, "metadata": None}
        )

        assert entity.metadata == {}
        assert not hasattr(entity, "confidence")

    def test_entity_extraction_from_json(self):
        parsed = EntityExtraction.model_validate_json(
            '{"entities": [{"text": "Paris", "type": "location"}]}'
        )
        assert parsed.entities[0].text == "Paris"

    def test_relationship_weight_bounds(self):
        with pytest.raises(ValidationError):
            ExtractedRelationship(source="a", target="b", type="x", weight=2.0)

    def test_chunk_extraction_ok(self):
        assert ChunkExtraction().ok
        assert not ChunkExtraction(failures=["entities"]).ok
