"""
Memory Engine - owns the ingest / process / retrieve lifecycle.

Brings together:
- Chunker (ingest)
- Embedder & Extractor providers (processing)
- Memory store & graph traversal
- Retrieval strategies
- Debounced background processing
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from souvenir.config import Config
from souvenir.core.chunking import Chunker, create_chunker
from souvenir.core.embeddings.base import Embedder
from souvenir.core.extraction.base import Extractor
from souvenir.core.factory import EmbedderFactory, LLMFactory, StoreFactory
from souvenir.core.graph.traversal import GraphTraversal
from souvenir.core.store.base import MemoryStore
from souvenir.core.tokenizer import Tokenizer
from souvenir.models.extraction import ChunkExtraction, ExtractedEntity
from souvenir.models.memory import (
    MemoryChunk,
    MemoryNode,
    MemoryRelationship,
    MemorySession,
    NodeType,
    RelationshipType,
)
from souvenir.models.retrieval import (
    AddOptions,
    FormattedContext,
    GraphPath,
    Neighborhood,
    ProcessingReport,
    ProcessOptions,
    SearchOptions,
    SearchResult,
    TraversalOptions,
)
from souvenir.services.retrieval import RetrievalEngine
from souvenir.services.scheduler import ProcessingScheduler
from souvenir.utils.exceptions import (
    EmbeddingDimensionError,
    EmbeddingError,
    ExtractionError,
    LLMError,
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
from souvenir.utils.similarity import pairwise_cosine_similarity

# Provider failures that only cost the current chunk
CHUNK_LOCAL_ERRORS = (EmbeddingError, LLMError, ExtractionError, ValidationError)


@dataclass
class _ChunkOutcome:
    chunk_node: MemoryNode
    node_ids: list[str] = field(default_factory=list)


def _clamp_weight(value: float | None) -> float:
    if value is None:
        return 1.0
    return min(1.0, max(0.0, float(value)))


class MemoryEngine:
    """
    Hybrid graph/vector memory for conversational agents.

    Features:
    - Cheap ingest: ``add`` only chunks and stores text
    - Processing into chunk, entity and summary nodes with entity dedup
    - Similarity edges within each session
    - Five retrieval strategies and LLM-ready context formatting
    - Path finding, neighborhoods and clustering
    - Optional debounced background processing
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        config: Config | None = None,
        extractor: Extractor | None = None,
        session_id: str | None = None,
        chunker: Chunker | None = None,
        sleep=asyncio.sleep,
    ):
        """
        Initialize Memory Engine.

        Args:
            store: Memory store
            embedder: Embedder for chunks, entities, summaries and queries
            config: Configuration object (defaults if not provided)
            extractor: Optional extractor; without one only chunk nodes are built
            session_id: Default session for add, process and search
            chunker: Chunker override (built from config if not provided)
            sleep: Sleep function for the debounce timer (injectable for tests)
        """
        self.store = store
        self.embedder = embedder
        self.config = config or Config()
        self.extractor = extractor
        self.session_id = session_id
        self._log = get_logger(__name__, session_id=session_id)
        # Sessions stamped by add() since the last background run, in order
        self._auto_sessions: dict[str | None, None] = {}

        self.chunker = chunker or create_chunker(
            self.config.chunking, Tokenizer(self.config.tokenizer)
        )
        self.traversal = GraphTraversal(store)
        self.retrieval = RetrievalEngine(
            store,
            embedder,
            traversal=self.traversal,
            config=self.config.retrieval,
            embed_query=self._embed,
        )
        self.scheduler = ProcessingScheduler(
            callback=self._background_process,
            delay=self.config.processing.auto_process_delay,
            batch_size=self.config.processing.batch_size,
            pending_count=self._pending_auto_chunks,
            sleep=sleep,
        )

        self._expected_dimension = EmbedderFactory.expected_dimension(embedder, self.config.embedder)
        self._dimension_validated = False
        self._process_lock = asyncio.Lock()
        self._entity_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Config, session_id: str | None = None) -> "MemoryEngine":
        """
        Build an engine and its providers from configuration.

        Also configures logging from ``config.logging``.
        """
        setup_logging(config.logging)

        extractor = LLMFactory.create_extractor(config.llm) if config.enable_extraction else None
        return cls(
            store=StoreFactory.create(config.store),
            embedder=EmbedderFactory.create(config.embedder),
            config=config,
            extractor=extractor,
            session_id=session_id,
        )

    async def initialize(self) -> None:
        """Initialize the store."""
        self._log.info("Initializing Memory Engine")
        await self.store.initialize()
        self._log.info("Memory Engine ready")

    # ═══════════════════════════════════════════════════════════
    # EMBEDDINGS
    # ═══════════════════════════════════════════════════════════

    def _validate_dimension(self, embedding: list[float]) -> None:
        if self._dimension_validated or self._expected_dimension is None:
            return
        if len(embedding) != self._expected_dimension:
            self._log.error(
                f"Embedding dimension mismatch: configured {self._expected_dimension}, "
                f"provider returned {len(embedding)}"
            )
            raise EmbeddingDimensionError(self._expected_dimension, len(embedding))
        self._dimension_validated = True

    async def _embed(self, text: str) -> list[float]:
        embedding = await self.embedder.embed(text)
        self._validate_dimension(embedding)
        return embedding

    # ═══════════════════════════════════════════════════════════
    # INGEST
    # ═══════════════════════════════════════════════════════════

    async def add(self, text: str, options: AddOptions | None = None) -> list[str]:
        """
        Chunk text and store the chunks for later processing.

        No embedding or extraction happens here.

        Args:
            text: Text to remember
            options: Session, source identifier and metadata for the chunks

        Returns:
            IDs of the stored chunks, in order

        Raises:
            ValidationError: If text is empty
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        options = options or AddOptions()
        session_id = options.session_id or self.session_id

        chunk_ids = []
        for index, content in enumerate(self.chunker.chunk(text)):
            metadata = dict(options.metadata)
            if session_id:
                metadata["session_id"] = session_id

            chunk = MemoryChunk(
                id=generate_chunk_id(),
                content=content,
                chunk_index=index,
                source_identifier=options.source_identifier,
                metadata=metadata,
            )
            await self.store.create_chunk(chunk)
            chunk_ids.append(chunk.id)

        self._log.info(f"Added {len(chunk_ids)} chunks (session={session_id})")

        if self.config.processing.auto_processing:
            self._auto_sessions[session_id] = None
            await self.scheduler.schedule()

        return chunk_ids

    # ═══════════════════════════════════════════════════════════
    # PROCESSING
    # ═══════════════════════════════════════════════════════════

    def _auto_scope(self) -> list[str | None]:
        sessions = list(self._auto_sessions) or [self.session_id]
        # None means every session
        return [None] if None in sessions else sessions

    async def _pending_auto_chunks(self) -> int:
        total = 0
        for session_id in self._auto_scope():
            total += await self.store.count_unprocessed_chunks(session_id)
        return total

    async def _background_process(self) -> ProcessingReport:
        """
        Process every session that add() stamped since the last background run.

        Sessions whose run raised or left failed chunks stay in scope for the
        next run.
        """
        pending = self._auto_scope()
        self._auto_sessions = {}
        report = ProcessingReport()
        try:
            while pending:
                run = await self.process_all(ProcessOptions(session_id=pending[0]))
                if run.failed_chunk_ids:
                    self._auto_sessions[pending[0]] = None
                pending.pop(0)
                report.merge(run)
        finally:
            for session_id in pending:
                self._auto_sessions[session_id] = None
        return report

    async def force_processing(self, options: ProcessOptions | None = None) -> ProcessingReport:
        """
        Process pending chunks now, bypassing the debounce timer.

        Waits for a background batch already in flight first.
        """
        return await self.scheduler.flush_now(lambda: self.process_all(options))

    async def process_all(self, options: ProcessOptions | None = None) -> ProcessingReport:
        """
        Turn unprocessed chunks into nodes and relationships.

        Chunks are claimed in batches of ``processing.batch_size`` and each
        batch is processed concurrently. Embedding/LLM failures only fail
        their chunk, which is released for a later run. An embedding
        dimension mismatch or a store error releases the claims and
        propagates.

        Args:
            options: Steps to run and optional session filter

        Returns:
            ProcessingReport for this run
        """
        options = options or ProcessOptions()
        if options.generate_summaries is None:
            options = options.model_copy(
                update={"generate_summaries": self.config.processing.generate_summaries}
            )

        report = ProcessingReport()
        failed: list[str] = []
        session_chunk_nodes: dict[str, list[MemoryNode]] = {}

        async with self._process_lock:
            try:
                while True:
                    batch = await self.store.claim_unprocessed_chunks(
                        generate_claim_id(),
                        session_id=options.session_id,
                        limit=self.config.processing.batch_size,
                        claim_timeout=self.config.processing.claim_timeout,
                    )
                    if not batch:
                        break

                    outcomes = await asyncio.gather(
                        *(self._process_chunk(chunk, options) for chunk in batch),
                        return_exceptions=True,
                    )

                    fatal: BaseException | None = None
                    for chunk, outcome in zip(batch, outcomes):
                        if isinstance(outcome, _ChunkOutcome):
                            report.processed_chunk_ids.append(chunk.id)
                            report.node_ids.extend(outcome.node_ids)
                            if chunk.session_id:
                                session_chunk_nodes.setdefault(chunk.session_id, []).append(
                                    outcome.chunk_node
                                )
                        elif isinstance(outcome, CHUNK_LOCAL_ERRORS):
                            self._log.warning(
                                f"Chunk {chunk.id} failed, will retry later: "
                                f"{type(outcome).__name__}: {outcome}"
                            )
                            failed.append(chunk.id)
                        else:
                            failed.append(chunk.id)
                            fatal = fatal or outcome

                    if fatal is not None:
                        raise fatal

                for session_id, chunk_nodes in session_chunk_nodes.items():
                    report.similarity_edges += await self._link_similar_nodes(session_id)
                    if options.generate_summaries:
                        summary_id = await self._summarize_session(session_id, chunk_nodes, options)
                        report.summary_node_id = summary_id or report.summary_node_id
            finally:
                report.failed_chunk_ids = failed
                if failed:
                    await self.store.release_chunks(failed)

        self._log.info(
            f"Processed {report.processed_count} chunks, {len(failed)} failed, "
            f"{len(report.node_ids)} nodes, {report.similarity_edges} similarity edges"
        )
        return report

    async def _process_chunk(self, chunk: MemoryChunk, options: ProcessOptions) -> _ChunkOutcome:
        """
        Process one claimed chunk.

        All provider calls happen before the first write, so a provider
        failure leaves nothing behind for the retry to duplicate.
        """
        embedding = None
        if options.generate_embeddings and chunk.content.strip():
            embedding = await self._embed(chunk.content)

        extraction = ChunkExtraction()
        if self.extractor is not None:
            extraction = await self.extractor.process_chunk(
                chunk.content,
                options,
                max_summary_length=self.config.processing.summary_max_length,
            )

        entity_embeddings = await self._embed_new_entities(extraction.entities, options)

        # Writes
        metadata: dict[str, Any] = {
            **chunk.metadata,
            "source_identifier": chunk.source_identifier,
            "chunk_index": chunk.chunk_index,
            "chunk_id": chunk.id,
        }
        if extraction.summary:
            metadata["summary"] = extraction.summary
        if extraction.failures:
            metadata["extraction_failures"] = list(extraction.failures)

        chunk_node = await self.store.create_node(
            MemoryNode(
                id=generate_node_id(),
                content=chunk.content,
                embedding=embedding,
                node_type=NodeType.CHUNK.value,
                metadata=metadata,
            )
        )
        outcome = _ChunkOutcome(chunk_node=chunk_node, node_ids=[chunk_node.id])
        if chunk.session_id:
            await self.store.add_node_to_session(chunk.session_id, chunk_node.id)

        resolved: dict[str, MemoryNode] = {}
        for entity in extraction.entities:
            entity_node, created = await self._upsert_entity(entity, chunk, entity_embeddings)
            if created:
                outcome.node_ids.append(entity_node.id)

            if not await self.store.relationship_exists(
                chunk_node.id, entity_node.id, RelationshipType.CONTAINS.value
            ):
                await self.store.create_relationship(
                    MemoryRelationship(
                        id=generate_relationship_id(),
                        source_id=chunk_node.id,
                        target_id=entity_node.id,
                        relationship_type=RelationshipType.CONTAINS,
                        weight=1.0,
                        metadata={"chunk_id": chunk.id},
                    )
                )
            if chunk.session_id:
                await self.store.add_node_to_session(chunk.session_id, entity_node.id)
            resolved.setdefault(entity.text.casefold(), entity_node)

        for rel in extraction.relationships:
            source = resolved.get(rel.source.casefold())
            target = resolved.get(rel.target.casefold())
            if source is None or target is None or source.id == target.id:
                self._log.debug(f"Skipping unresolved relationship {rel.source} -> {rel.target}")
                continue
            if await self.store.relationship_exists(source.id, target.id, rel.type):
                continue
            await self.store.create_relationship(
                MemoryRelationship(
                    id=generate_relationship_id(),
                    source_id=source.id,
                    target_id=target.id,
                    relationship_type=rel.type,
                    weight=_clamp_weight(rel.weight),
                    metadata={"chunk_id": chunk.id},
                )
            )

        await self.store.mark_chunk_processed(chunk.id)
        return outcome

    async def _embed_new_entities(
        self, entities: list[ExtractedEntity], options: ProcessOptions
    ) -> dict[tuple[str, str], list[float]]:
        """Embed entities not yet stored, keyed by (text, type)."""
        if not options.generate_embeddings:
            return {}

        embeddings: dict[tuple[str, str], list[float]] = {}
        for entity in entities:
            key = (entity.text, entity.type)
            if key in embeddings:
                continue
            if await self.store.find_node_by_content_and_type(entity.text, entity.type):
                continue
            embeddings[key] = await self._embed(entity.text)
        return embeddings

    async def _upsert_entity(
        self,
        entity: ExtractedEntity,
        chunk: MemoryChunk,
        embeddings: dict[tuple[str, str], list[float]],
    ) -> tuple[MemoryNode, bool]:
        """Reuse the stored (content, type) node or create it. Returns (node, created)."""
        async with self._entity_lock:
            existing = await self.store.find_node_by_content_and_type(entity.text, entity.type)
            if existing is not None:
                return existing, False

            node = MemoryNode(
                id=generate_node_id(),
                content=entity.text,
                embedding=embeddings.get((entity.text, entity.type)),
                node_type=entity.type,
                metadata={**entity.metadata, "first_seen_chunk_id": chunk.id},
            )
            await self.store.create_node(node)
            return node, True

    async def _link_similar_nodes(self, session_id: str) -> int:
        """
        Create ``similar_to`` edges between a session's embedded nodes.

        Pairs at or above ``processing.similarity_threshold`` that are not
        already linked get one edge, weighted by their similarity.
        """
        nodes = [
            node
            for node in await self.store.get_nodes_in_session(session_id)
            if node.has_embedding
        ]
        if self._expected_dimension is not None:
            nodes = [node for node in nodes if len(node.embedding) == self._expected_dimension]
        if len(nodes) < 2:
            return 0

        existing = {
            frozenset((rel.source_id, rel.target_id))
            for rel in await self.store.get_relationships_among(
                [node.id for node in nodes], [RelationshipType.SIMILAR_TO.value]
            )
        }

        threshold = self.config.processing.similarity_threshold
        matrix = pairwise_cosine_similarity([node.embedding for node in nodes])
        created = 0

        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                similarity = float(matrix[i][j])
                if similarity < threshold:
                    continue
                pair = frozenset((nodes[i].id, nodes[j].id))
                if pair in existing:
                    continue

                await self.store.create_relationship(
                    MemoryRelationship(
                        id=generate_relationship_id(),
                        source_id=nodes[i].id,
                        target_id=nodes[j].id,
                        relationship_type=RelationshipType.SIMILAR_TO,
                        weight=_clamp_weight(similarity),
                        metadata={"similarity": similarity, "session_id": session_id},
                    )
                )
                existing.add(pair)
                created += 1

        self._log.debug(f"Created {created} similar_to edges in session {session_id}")
        return created

    async def _summarize_session(
        self, session_id: str, chunk_nodes: list[MemoryNode], options: ProcessOptions
    ) -> str | None:
        """Create a summary node over the chunk nodes processed in this run."""
        if self.extractor is None or not chunk_nodes:
            return None

        max_length = self.config.processing.session_summary_max_length
        summary = await self.extractor.summarize(
            [node.content for node in chunk_nodes], max_length=max_length
        )
        if not summary:
            return None

        embedding = None
        if options.generate_embeddings:
            try:
                embedding = await self._embed(summary)
            except CHUNK_LOCAL_ERRORS as e:
                self._log.warning(f"Skipping session summary, embedding failed: {e}")
                return None

        source_ids = [node.id for node in chunk_nodes]
        summary_node = await self.store.create_node(
            MemoryNode(
                id=generate_node_id(),
                content=summary,
                embedding=embedding,
                node_type=NodeType.SUMMARY.value,
                metadata={
                    "summary_of": "session",
                    "session_id": session_id,
                    "source_ids": source_ids,
                    "summary_length": len(summary),
                    "generated_at": datetime.now().isoformat(),
                },
            )
        )
        await self.store.add_node_to_session(session_id, summary_node.id)

        for source_id in source_ids[: self.config.processing.max_summary_edges]:
            await self.store.create_relationship(
                MemoryRelationship(
                    id=generate_relationship_id(),
                    source_id=summary_node.id,
                    target_id=source_id,
                    relationship_type=RelationshipType.SUMMARIZES,
                    weight=1.0,
                )
            )

        self._log.info(f"Created session summary {summary_node.id} over {len(source_ids)} chunks")
        return summary_node.id

    # ═══════════════════════════════════════════════════════════
    # RETRIEVAL
    # ═══════════════════════════════════════════════════════════

    def _search_options(self, options: SearchOptions | None) -> SearchOptions:
        options = options or SearchOptions()
        if options.session_id is None and self.session_id is not None:
            options = options.model_copy(update={"session_id": self.session_id})
        return options

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """
        Search memory with the strategy named in ``options`` (vector by default).

        Falls back to the engine's session and the configured minimum score.
        Strategy failures return []; configuration errors propagate.
        """
        return await self.retrieval.search(query, self._search_options(options))

    async def search_graph(
        self, query: str, options: SearchOptions | None = None
    ) -> FormattedContext:
        """Graph-completion context formatted for an LLM."""
        return await self.retrieval.search_graph(query, self._search_options(options))

    async def search_hybrid(
        self, query: str, options: SearchOptions | None = None
    ) -> FormattedContext:
        """Hybrid context formatted for an LLM."""
        return await self.retrieval.search_hybrid(query, self._search_options(options))

    # ═══════════════════════════════════════════════════════════
    # GRAPH
    # ═══════════════════════════════════════════════════════════

    async def find_paths(
        self, start_id: str, end_id: str, options: TraversalOptions | None = None
    ) -> list[GraphPath]:
        """
        Find paths between two nodes, following relationships in either direction.

        Args:
            start_id: Node to start from
            end_id: Node to reach
            options: Depth bound and type filters

        Returns:
            Paths sorted by total weight, heaviest first ([] if none)
        """
        return await self.traversal.find_paths(start_id, end_id, options)

    async def get_neighborhood(
        self, node_id: str, options: TraversalOptions | None = None
    ) -> Neighborhood:
        """
        Collect nodes and relationships within ``options.max_depth`` hops of a node.

        Args:
            node_id: Seed node
            options: Depth bound and type filters

        Returns:
            Neighborhood including the seed (empty for an unknown id)
        """
        return await self.traversal.get_neighborhood(node_id, options)

    async def find_clusters(
        self, session_id: str | None = None, min_cluster_size: int = 3
    ) -> list[list[MemoryNode]]:
        """
        Group a session's nodes into connected components.

        Args:
            session_id: Session to cluster (the engine's session if omitted)
            min_cluster_size: Smallest component returned

        Returns:
            Clusters of at least ``min_cluster_size`` nodes
        """
        return await self.traversal.find_clusters(session_id or self.session_id, min_cluster_size)

    # ═══════════════════════════════════════════════════════════
    # NODES & SESSIONS
    # ═══════════════════════════════════════════════════════════

    async def get_node(self, node_id: str) -> MemoryNode | None:
        """
        Get a node by id.

        Args:
            node_id: Node ID

        Returns:
            The node, or None if it does not exist
        """
        return await self.store.get_node(node_id)

    async def delete_node(self, node_id: str) -> bool:
        """Delete a node with its relationships and memberships. Unknown ids are ignored."""
        deleted = await self.store.delete_node(node_id)
        if deleted:
            self._log.info(f"Node deleted: {node_id}")
        return deleted

    async def delete_nodes(self, node_ids: list[str]) -> int:
        """Best-effort bulk delete; returns how many nodes were removed."""
        deleted = await self.store.delete_nodes(node_ids)
        self._log.info(f"Deleted {deleted} of {len(node_ids)} requested nodes")
        return deleted

    async def create_session(
        self,
        session_name: str | None = None,
        metadata: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> MemorySession:
        """Create a session (idempotent on ``session_id``)."""
        session = MemorySession(
            id=session_id or generate_session_id(),
            session_name=session_name,
            metadata=metadata or {},
        )
        return await self.store.create_session(session)

    async def get_session(self, session_id: str) -> MemorySession | None:
        """
        Get a session by id.

        Args:
            session_id: Session ID

        Returns:
            The session, or None if it does not exist
        """
        return await self.store.get_session(session_id)

    async def get_nodes_in_session(
        self, session_id: str | None = None, node_types: list[str] | None = None
    ) -> list[MemoryNode]:
        """
        List the nodes that belong to a session.

        Args:
            session_id: Session ID (the engine's session if omitted)
            node_types: Optional node type filter

        Returns:
            Member nodes ([] without a session)
        """
        session_id = session_id or self.session_id
        if session_id is None:
            return []
        return await self.store.get_nodes_in_session(session_id, node_types=node_types)

    # ═══════════════════════════════════════════════════════════
    # HEALTH, STATISTICS & LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def health_check(self) -> bool:
        """
        Check the store is reachable.

        Returns:
            True if the store answers queries
        """
        return await self.store.health_check()

    async def get_statistics(self) -> dict[str, Any]:
        """
        Get memory engine statistics.

        Returns:
            Statistics dictionary
        """
        total_nodes = await self.store.count_nodes()
        chunk_nodes = await self.store.count_nodes(NodeType.CHUNK.value)
        summary_nodes = await self.store.count_nodes(NodeType.SUMMARY.value)

        return {
            "nodes": {
                "total": total_nodes,
                "chunks": chunk_nodes,
                "summaries": summary_nodes,
                "entities": total_nodes - chunk_nodes - summary_nodes,
            },
            "relationships": {
                "total": await self.store.count_relationships(),
                "contains": await self.store.count_relationships(RelationshipType.CONTAINS.value),
                "similar_to": await self.store.count_relationships(
                    RelationshipType.SIMILAR_TO.value
                ),
            },
            "pending_chunks": await self.store.count_unprocessed_chunks(self.session_id),
            "session_id": self.session_id,
            "background_error": repr(self.scheduler.last_error) if self.scheduler.last_error else None,
        }

    async def close(self) -> None:
        """Stop the scheduler, then close store and providers."""
        self._log.info("Shutting down Memory Engine")

        await self.scheduler.shutdown()
        await self.store.close()
        await self.embedder.close()
        if self.extractor is not None:
            await self.extractor.close()

        self._log.info("Memory Engine shutdown complete")
