"""
Graph traversal: path finding, neighborhood expansion and clustering.

Pure algorithms over the store's adjacency queries. Missing node ids are a
valid query outcome and produce empty results, never errors.
"""

from collections import deque
from dataclasses import dataclass, field

from souvenir.core.store.base import MemoryStore
from souvenir.models.memory import MemoryNode, MemoryRelationship
from souvenir.models.retrieval import GraphPath, Neighborhood, TraversalOptions
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PATH_DEPTH = 5
DEFAULT_NEIGHBORHOOD_DEPTH = 2
DEFAULT_MIN_CLUSTER_SIZE = 3


@dataclass
class _Frontier:
    """One BFS branch: its node path, relationship path and private visited set."""

    nodes: list[MemoryNode]
    relationships: list[MemoryRelationship]
    visited: set[str] = field(default_factory=set)

    @property
    def head(self) -> MemoryNode:
        return self.nodes[-1]

    @property
    def depth(self) -> int:
        return len(self.relationships)


class GraphTraversal:
    """
    Graph algorithms over a MemoryStore.

    Usage:
        traversal = GraphTraversal(store)
        paths = await traversal.find_paths("node_a", "node_b")
        hood = await traversal.get_neighborhood("node_a", TraversalOptions(max_depth=1))
        clusters = await traversal.find_clusters(session_id="session_1")
    """

    def __init__(self, store: MemoryStore):
        self.store = store

    async def _neighbors(
        self,
        node_id: str,
        options: TraversalOptions,
        cache: dict[str, MemoryNode | None],
    ) -> list[tuple[MemoryRelationship, MemoryNode]]:
        """Adjacent (relationship, far node) pairs passing the traversal filters."""
        relationships = await self.store.get_relationships_for_node(
            node_id, options.relationship_types
        )

        unknown = [
            rel.other_end(node_id) for rel in relationships if rel.other_end(node_id) not in cache
        ]
        if unknown:
            fetched = {node.id: node for node in await self.store.get_nodes(unknown)}
            for other_id in unknown:
                cache[other_id] = fetched.get(other_id)

        pairs = []
        for rel in relationships:
            other = cache.get(rel.other_end(node_id))
            if other is None:
                continue
            if options.node_types and other.node_type not in options.node_types:
                continue
            pairs.append((rel, other))
        return pairs

    async def find_paths(
        self,
        start_id: str,
        end_id: str,
        options: TraversalOptions | None = None,
    ) -> list[GraphPath]:
        """
        Find every path from ``start_id`` to ``end_id`` within the depth bound.

        Breadth-first; each branch keeps its own visited set, so a node reached
        by one branch can still be used by another. Relationships are followed
        in both directions.

        Args:
            start_id: Start node
            end_id: End node
            options: Depth bound (default 5) and type filters

        Returns:
            Paths ordered by descending total weight, discovery order on ties
        """
        options = options or TraversalOptions()
        max_depth = DEFAULT_PATH_DEPTH if options.max_depth is None else options.max_depth

        start = await self.store.get_node(start_id)
        end = await self.store.get_node(end_id)
        if start is None or end is None:
            return []

        if start_id == end_id:
            return [GraphPath(nodes=[start], relationships=[], total_weight=0.0)]

        cache: dict[str, MemoryNode | None] = {start.id: start, end.id: end}
        paths: list[GraphPath] = []
        queue = deque([_Frontier(nodes=[start], relationships=[], visited={start_id})])

        while queue:
            branch = queue.popleft()
            if branch.depth >= max_depth:
                continue

            for rel, other in await self._neighbors(branch.head.id, options, cache):
                if other.id in branch.visited:
                    continue

                nodes = [*branch.nodes, other]
                relationships = [*branch.relationships, rel]

                if other.id == end_id:
                    paths.append(
                        GraphPath(
                            nodes=nodes,
                            relationships=relationships,
                            total_weight=sum(r.weight for r in relationships),
                        )
                    )
                    continue

                queue.append(
                    _Frontier(nodes=nodes, relationships=relationships, visited={*branch.visited, other.id})
                )

        # sorted() is stable, so equal weights keep discovery order
        return sorted(paths, key=lambda path: path.total_weight, reverse=True)

    async def get_neighborhood(
        self,
        node_id: str,
        options: TraversalOptions | None = None,
    ) -> Neighborhood:
        """
        Collect nodes and relationships within ``max_depth`` hops of a seed.

        The seed is always part of the result, even at depth 0. Nodes and
        relationships are deduplicated by id.

        Args:
            node_id: Seed node
            options: Depth bound (default 2) and type filters

        Returns:
            Neighborhood; empty if the seed does not exist
        """
        options = options or TraversalOptions()
        max_depth = DEFAULT_NEIGHBORHOOD_DEPTH if options.max_depth is None else options.max_depth

        seed = await self.store.get_node(node_id)
        if seed is None:
            return Neighborhood()

        cache: dict[str, MemoryNode | None] = {seed.id: seed}
        nodes: dict[str, MemoryNode] = {seed.id: seed}
        relationships: dict[str, MemoryRelationship] = {}
        queue = deque([(seed.id, 0)])

        while queue:
            current_id, depth = queue.popleft()
            if depth >= max_depth:
                continue

            for rel, other in await self._neighbors(current_id, options, cache):
                relationships.setdefault(rel.id, rel)
                if other.id not in nodes:
                    nodes[other.id] = other
                    queue.append((other.id, depth + 1))

        return Neighborhood(nodes=list(nodes.values()), relationships=list(relationships.values()))

    async def find_clusters(
        self,
        session_id: str | None = None,
        min_cluster_size: int = DEFAULT_MIN_CLUSTER_SIZE,
    ) -> list[list[MemoryNode]]:
        """
        Connected components of the undirected graph over the nodes in scope.

        Args:
            session_id: Restrict to one session's nodes (all nodes if None)
            min_cluster_size: Smallest component to report

        Returns:
            Components with at least ``min_cluster_size`` nodes, largest first
        """
        if session_id is not None:
            scope = await self.store.get_nodes_in_session(session_id)
        else:
            scope = await self.store.get_all_nodes()
        if not scope:
            return []

        by_id = {node.id: node for node in scope}
        adjacency: dict[str, set[str]] = {node_id: set() for node_id in by_id}
        for rel in await self.store.get_relationships_among(list(by_id)):
            adjacency[rel.source_id].add(rel.target_id)
            adjacency[rel.target_id].add(rel.source_id)

        visited: set[str] = set()
        clusters: list[list[MemoryNode]] = []

        for root in by_id:
            if root in visited:
                continue

            component: list[MemoryNode] = []
            stack = [root]
            visited.add(root)
            while stack:
                current = stack.pop()
                component.append(by_id[current])
                for neighbor in adjacency[current]:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        stack.append(neighbor)

            if len(component) >= min_cluster_size:
                clusters.append(component)

        logger.debug(f"Found {len(clusters)} clusters of size >= {min_cluster_size}")
        return sorted(clusters, key=len, reverse=True)
