"""
Services for Souvenir.

High-level services:
- MemoryEngine: Unified interface for ingest, processing and retrieval
- RetrievalEngine: Vector, graph and hybrid retrieval strategies
- ProcessingScheduler: Debounced background processing
"""

from souvenir.services.memory_engine import MemoryEngine
from souvenir.services.retrieval import RetrievalEngine
from souvenir.services.scheduler import ProcessingScheduler

__all__ = [
    "MemoryEngine",
    "RetrievalEngine",
    "ProcessingScheduler",
]
