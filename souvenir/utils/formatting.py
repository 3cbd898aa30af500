"""
Formatting of retrieval results into LLM-ready context.
"""

from souvenir.models.memory import MemoryNode, MemoryRelationship, NodeType
from souvenir.models.retrieval import (
    ContextSource,
    FormattedContext,
    GraphRetrievalResult,
    Neighborhood,
    SearchResult,
)

NO_CONTEXT = "No relevant context found."
NO_GRAPH_CONTEXT = "No relevant graph context found."
SECTION_SEPARATOR = "\n\n---\n\n"
MAX_TRIPLET_CONTENT = 100


def truncate(text: str, limit: int = MAX_TRIPLET_CONTENT) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with '...'."""
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def _sources(results: list[SearchResult]) -> list[ContextSource]:
    seen: set[str] = set()
    sources = []
    for result in results:
        if result.node.id in seen:
            continue
        seen.add(result.node.id)
        sources.append(ContextSource(node_id=result.node.id, score=result.score))
    return sources


def format_search_results(results: list[SearchResult]) -> FormattedContext:
    """Numbered list of node contents with scores."""
    if not results:
        return FormattedContext(type="text", content=NO_CONTEXT)

    lines = [
        f"[{i}] (score: {result.score:.2f}) {result.node.content}"
        for i, result in enumerate(results, start=1)
    ]
    return FormattedContext(
        type="text",
        content="\n\n".join(lines),
        sources=_sources(results),
        metadata={"result_count": len(results)},
    )


def format_graph_triplets(node: MemoryNode, neighborhood: Neighborhood) -> str:
    """
    Describe a node and its neighborhood as grouped triplets.

    Example:
        **Node**: Paris
        **Type**: location

        **Relationships**:
        - related_to:
          - Paris → France (weight: 0.90)
    """
    lines = [f"**Node**: {truncate(node.content)}"]
    if node.node_type != NodeType.CHUNK.value:
        lines.append(f"**Type**: {node.node_type}")

    if not neighborhood.relationships:
        return "\n".join(lines)

    contents = {n.id: n.content for n in neighborhood.nodes}
    contents.setdefault(node.id, node.content)

    grouped: dict[str, list[MemoryRelationship]] = {}
    for rel in neighborhood.relationships:
        grouped.setdefault(rel.relationship_type, []).append(rel)

    lines.extend(["", "**Relationships**:"])
    for rel_type, rels in grouped.items():
        lines.append(f"- {rel_type}:")
        for rel in rels:
            source = truncate(contents.get(rel.source_id, rel.source_id))
            target = truncate(contents.get(rel.target_id, rel.target_id))
            lines.append(f"  - {source} → {target} (weight: {rel.weight:.2f})")

    return "\n".join(lines)


def format_summary(node: MemoryNode) -> str:
    """Summary node text with its provenance."""
    summary_of = node.metadata.get("summary_of")
    header = f"**Summary** ({summary_of})" if summary_of else "**Summary**"
    return f"{header}: {node.content}"


def format_graph_retrieval(results: list[GraphRetrievalResult]) -> FormattedContext:
    """Join the triplet blocks of graph retrieval results."""
    if not results:
        return FormattedContext(type="graph", content=NO_GRAPH_CONTEXT)

    blocks = [
        result.formatted_triplets or format_graph_triplets(result.node, result.neighborhood)
        for result in results
    ]
    return FormattedContext(
        type="graph",
        content=SECTION_SEPARATOR.join(blocks),
        sources=_sources([result.to_search_result() for result in results]),
        metadata={
            "result_count": len(results),
            "relationship_count": sum(len(r.neighborhood.relationships) for r in results),
        },
    )


def format_hybrid_context(
    vector_results: list[SearchResult],
    graph_results: list[GraphRetrievalResult],
) -> FormattedContext:
    """
    Vector hits first, then graph context for nodes the vector leg did not return.
    """
    vector_ids = {result.node.id for result in vector_results}
    graph_only = [result for result in graph_results if result.node.id not in vector_ids]

    if not vector_results and not graph_only:
        return FormattedContext(type="hybrid", content=NO_CONTEXT)

    sections = []
    if vector_results:
        sections.append("## Relevant memories\n\n" + format_search_results(vector_results).content)
    if graph_only:
        sections.append("## Graph context\n\n" + format_graph_retrieval(graph_only).content)

    merged = [*vector_results, *(result.to_search_result() for result in graph_only)]
    return FormattedContext(
        type="hybrid",
        content="\n\n".join(sections),
        sources=_sources(merged),
        metadata={"vector_count": len(vector_results), "graph_count": len(graph_only)},
    )
