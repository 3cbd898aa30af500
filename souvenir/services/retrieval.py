"""
Retrieval Engine - five strategies over the memory graph.

Strategies:
1. vector: embedding similarity, session post-filter
2. graph-neighborhood: vector seeds + 1-hop neighborhoods
3. graph-completion: entity seeds + 2-hop neighborhoods
4. graph-summary: summary seeds + neighborhoods of their sources
5. hybrid: vector and graph-completion concurrently, merged

Result caps (``top_k``, else ``limit``) are always applied last, after
session filtering and merging.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable

from souvenir.config import RetrievalConfig
from souvenir.core.embeddings.base import Embedder
from souvenir.core.graph.traversal import GraphTraversal
from souvenir.core.store.base import MemoryStore
from souvenir.models.memory import ENTITY_NODE_TYPES, MemoryNode, MemoryRelationship, NodeType
from souvenir.models.retrieval import (
    FormattedContext,
    GraphRetrievalResult,
    HybridRetrievalResult,
    Neighborhood,
    RetrievalStrategy,
    SearchOptions,
    SearchResult,
    TraversalOptions,
)
from souvenir.utils.exceptions import ConfigurationError
from souvenir.utils.formatting import (
    NO_CONTEXT,
    NO_GRAPH_CONTEXT,
    format_graph_retrieval,
    format_graph_triplets,
    format_hybrid_context,
    format_summary,
)
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VECTOR_LIMIT = 10
DEFAULT_GRAPH_LIMIT = 5
NEIGHBORHOOD_DEPTH = 1
COMPLETION_DEPTH = 2
MAX_SUMMARY_SOURCES = 3
OVERFETCH_FACTOR = 2


def _merge_neighborhoods(neighborhoods: list[Neighborhood]) -> Neighborhood:
    nodes: dict[str, MemoryNode] = {}
    relationships: dict[str, MemoryRelationship] = {}
    for hood in neighborhoods:
        for node in hood.nodes:
            nodes.setdefault(node.id, node)
        for rel in hood.relationships:
            relationships.setdefault(rel.id, rel)
    return Neighborhood(nodes=list(nodes.values()), relationships=list(relationships.values()))


class RetrievalEngine:
    """
    Composes the store and graph traversal into retrieval strategies.

    Usage:
        retrieval = RetrievalEngine(store, embedder)
        results = await retrieval.search("capital of France", SearchOptions(strategy="hybrid"))
        context = await retrieval.search_graph("capital of France")
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        traversal: GraphTraversal | None = None,
        config: RetrievalConfig | None = None,
        embed_query: Callable[[str], Awaitable[list[float]]] | None = None,
    ):
        """
        Initialize retrieval engine.

        Args:
            store: Memory store
            embedder: Embedder for query text
            traversal: Graph traversal (created over ``store`` if not provided)
            config: Retrieval defaults
            embed_query: Optional replacement for ``embedder.embed`` (e.g. with dimension checks)
        """
        self.store = store
        self.embedder = embedder
        self.traversal = traversal or GraphTraversal(store)
        self.config = config or RetrievalConfig()
        self._embed_query = embed_query or embedder.embed

    def _min_score(self, options: SearchOptions) -> float:
        if options.min_score is not None:
            return options.min_score
        return self.config.min_relevance_score

    # ═══════════════════════════════════════════════════════════
    # PUBLIC SURFACE
    # ═══════════════════════════════════════════════════════════

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """
        Run the strategy named in ``options`` and return ranked results.

        Strategy failures degrade to an empty list; configuration errors
        (such as an embedding dimension mismatch) propagate.
        """
        options = options or SearchOptions()
        strategy = RetrievalStrategy(options.strategy)

        try:
            if strategy == RetrievalStrategy.VECTOR:
                return await self.vector_search(query, options)
            if strategy == RetrievalStrategy.GRAPH_NEIGHBORHOOD:
                results = await self.graph_neighborhood_search(query, options)
            elif strategy == RetrievalStrategy.GRAPH_COMPLETION:
                results = await self.graph_completion_search(query, options)
            elif strategy == RetrievalStrategy.GRAPH_SUMMARY:
                results = await self.graph_summary_search(query, options)
            else:
                return (await self.hybrid_search(query, options)).merged
            return [result.to_search_result() for result in results]
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Search failed (strategy={strategy.value}): {type(e).__name__}: {e}")
            return []

    async def search_graph(
        self, query: str, options: SearchOptions | None = None
    ) -> FormattedContext:
        """Graph-completion retrieval formatted as triplets for an LLM."""
        options = options or SearchOptions()
        try:
            results = await self.graph_completion_search(query, options)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Graph search failed: {type(e).__name__}: {e}")
            return FormattedContext(type="graph", content=NO_GRAPH_CONTEXT)
        return format_graph_retrieval(results)

    async def search_hybrid(
        self, query: str, options: SearchOptions | None = None
    ) -> FormattedContext:
        """Hybrid retrieval formatted as vector hits plus graph-only context."""
        options = options or SearchOptions()
        try:
            result = await self.hybrid_search(query, options)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Hybrid search failed: {type(e).__name__}: {e}")
            return FormattedContext(type="hybrid", content=NO_CONTEXT)

        merged_ids = {r.node.id for r in result.merged}
        vector_results = [r for r in result.vector_results if r.node.id in merged_ids]
        graph_results = [r for r in result.graph_results if r.node.id in merged_ids]
        return format_hybrid_context(vector_results, graph_results)

    # ═══════════════════════════════════════════════════════════
    # STRATEGIES
    # ═══════════════════════════════════════════════════════════

    async def vector_search(
        self,
        query: str,
        options: SearchOptions,
        embedding: list[float] | None = None,
    ) -> list[SearchResult]:
        """
        Similarity ranking with an optional session post-filter.

        Over-fetches ``limit * 2`` candidates from the store, intersects them
        with the session's members, then caps.
        """
        limit = options.limit or DEFAULT_VECTOR_LIMIT
        if embedding is None:
            embedding = await self._embed_query(query)

        candidates = await self.store.search_by_similarity(
            embedding,
            limit=limit * OVERFETCH_FACTOR,
            min_score=self._min_score(options),
            node_types=options.node_types,
        )

        if options.session_id:
            members = await self.store.get_session_node_ids(options.session_id)
            candidates = [result for result in candidates if result.node.id in members]

        results = candidates[: options.result_cap(limit)]

        if options.include_relationships:
            for result in results:
                result.relationships = await self.store.get_relationships_for_node(
                    result.node.id, options.relationship_types
                )

        return results

    async def _expand_seeds(
        self,
        seeds: list[SearchResult],
        traversal_options: TraversalOptions,
    ) -> list[GraphRetrievalResult]:
        neighborhoods = await asyncio.gather(
            *(self.traversal.get_neighborhood(seed.node.id, traversal_options) for seed in seeds)
        )
        return [
            GraphRetrievalResult(
                node=seed.node,
                score=seed.score,
                neighborhood=hood,
                formatted_triplets=format_graph_triplets(seed.node, hood),
            )
            for seed, hood in zip(seeds, neighborhoods)
        ]

    async def graph_neighborhood_search(
        self,
        query: str,
        options: SearchOptions,
        embedding: list[float] | None = None,
    ) -> list[GraphRetrievalResult]:
        """Vector seeds, each expanded to its 1-hop neighborhood."""
        limit = options.limit or DEFAULT_GRAPH_LIMIT
        seed_options = options.model_copy(update={"limit": limit, "top_k": None})
        seeds = await self.vector_search(query, seed_options, embedding)

        results = await self._expand_seeds(
            seeds,
            TraversalOptions(
                max_depth=NEIGHBORHOOD_DEPTH, relationship_types=options.relationship_types
            ),
        )
        return results[: options.result_cap(limit)]

    async def graph_completion_search(
        self,
        query: str,
        options: SearchOptions,
        embedding: list[float] | None = None,
    ) -> list[GraphRetrievalResult]:
        """Entity-typed seeds (unless node types are given), expanded two hops."""
        limit = options.limit or DEFAULT_GRAPH_LIMIT
        seed_types = options.node_types or list(ENTITY_NODE_TYPES)
        seed_options = options.model_copy(
            update={"limit": limit, "top_k": None, "node_types": seed_types}
        )
        seeds = await self.vector_search(query, seed_options, embedding)

        results = await self._expand_seeds(
            seeds,
            TraversalOptions(
                max_depth=COMPLETION_DEPTH,
                relationship_types=options.relationship_types,
                node_types=options.node_types,
            ),
        )
        return results[: options.result_cap(limit)]

    async def graph_summary_search(
        self,
        query: str,
        options: SearchOptions,
        embedding: list[float] | None = None,
    ) -> list[GraphRetrievalResult]:
        """
        Summary seeds; each is combined with the neighborhoods of up to three
        of its recorded source nodes.
        """
        limit = options.limit or DEFAULT_GRAPH_LIMIT
        seed_types = [NodeType.SUMMARY.value, *(options.node_types or [])]
        seed_options = options.model_copy(
            update={"limit": limit, "top_k": None, "node_types": list(dict.fromkeys(seed_types))}
        )
        seeds = await self.vector_search(query, seed_options, embedding)

        traversal_options = TraversalOptions(
            max_depth=NEIGHBORHOOD_DEPTH, relationship_types=options.relationship_types
        )
        results = []
        for seed in seeds:
            source_ids = list(seed.node.metadata.get("source_ids") or [])[:MAX_SUMMARY_SOURCES]
            neighborhoods = await asyncio.gather(
                *(self.traversal.get_neighborhood(source_id, traversal_options) for source_id in source_ids)
            )

            blocks = [format_summary(seed.node)]
            for source_id, hood in zip(source_ids, neighborhoods):
                source = next((node for node in hood.nodes if node.id == source_id), None)
                if source is not None:
                    blocks.append(format_graph_triplets(source, hood))

            results.append(
                GraphRetrievalResult(
                    node=seed.node,
                    score=seed.score,
                    neighborhood=_merge_neighborhoods(list(neighborhoods)),
                    formatted_triplets="\n\n".join(blocks),
                )
            )

        return results[: options.result_cap(limit)]

    async def hybrid_search(
        self,
        query: str,
        options: SearchOptions,
    ) -> HybridRetrievalResult:
        """
        Vector and graph-completion legs run concurrently with half the
        budget each. The merge keeps vector order, appends graph-only nodes
        and never repeats a node id.
        """
        limit = options.limit or DEFAULT_VECTOR_LIMIT
        per_leg = math.ceil(limit / 2)
        leg_options = options.model_copy(update={"limit": per_leg, "top_k": None})

        embedding = await self._embed_query(query)
        vector_results, graph_results = await asyncio.gather(
            self.vector_search(query, leg_options, embedding),
            self.graph_completion_search(query, leg_options, embedding),
        )

        merged: list[SearchResult] = []
        seen: set[str] = set()
        for result in [*vector_results, *(r.to_search_result() for r in graph_results)]:
            if result.node.id in seen:
                continue
            seen.add(result.node.id)
            merged.append(result)

        return HybridRetrievalResult(
            vector_results=vector_results,
            graph_results=graph_results,
            merged=merged[: options.result_cap(limit)],
        )
