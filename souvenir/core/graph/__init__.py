"""
Graph algorithms over the memory store.
"""

from souvenir.core.graph.traversal import GraphTraversal

__all__ = ["GraphTraversal"]
