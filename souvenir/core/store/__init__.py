"""
Persistence for chunks, nodes, relationships and sessions.

Supported backends:
- SQLite (aiosqlite)
"""

from souvenir.core.store.base import MemoryStore
from souvenir.core.store.sqlite_store import SQLiteMemoryStore

__all__ = ["MemoryStore", "SQLiteMemoryStore"]
