"""
SQLite memory store implementation.

Uses aiosqlite with JSON stored in TEXT columns. Similarity ranking is
computed in-process over the stored embeddings with numpy/scikit-learn.
"""

import json
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from souvenir.core.store.base import MemoryStore
from souvenir.models.memory import MemoryChunk, MemoryNode, MemoryRelationship, MemorySession
from souvenir.models.retrieval import SearchResult
from souvenir.utils.exceptions import StoreError, ValidationError
from souvenir.utils.logger import get_logger
from souvenir.utils.similarity import batch_cosine_similarity

logger = get_logger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        content TEXT NOT NULL,
        embedding TEXT,
        node_type TEXT NOT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationships (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL,
        target_id TEXT NOT NULL,
        relationship_type TEXT NOT NULL,
        weight REAL NOT NULL DEFAULT 1.0,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        FOREIGN KEY (source_id) REFERENCES nodes(id) ON DELETE CASCADE,
        FOREIGN KEY (target_id) REFERENCES nodes(id) ON DELETE CASCADE,
        CHECK (source_id <> target_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        session_name TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS session_nodes (
        session_id TEXT NOT NULL,
        node_id TEXT NOT NULL,
        added_at TEXT NOT NULL,
        PRIMARY KEY (session_id, node_id),
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE,
        FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id TEXT PRIMARY KEY,
        content TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        source_identifier TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        processed INTEGER NOT NULL DEFAULT 0,
        claimed_by TEXT,
        claimed_at REAL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_nodes_type ON nodes(node_type)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_content_type ON nodes(content, node_type)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_source ON relationships(source_id)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_target ON relationships(target_id)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_type ON relationships(relationship_type)",
    "CREATE INDEX IF NOT EXISTS idx_session_nodes_node ON session_nodes(node_id)",
    "CREATE INDEX IF NOT EXISTS idx_chunks_processed ON chunks(processed)",
]


def _placeholders(values: list[Any]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteMemoryStore(MemoryStore):
    """
    SQLite-based memory store.

    Features:
    - Fast local storage, one file per store
    - JSON metadata and embeddings
    - Cascading deletes for relationships and memberships
    - Atomic chunk claiming for concurrent processing runs
    """

    def __init__(self, db_path: str = "data/souvenir.db"):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file (":memory:" for a private in-memory database)
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> aiosqlite.Connection:
        """Establish connection to SQLite."""
        if self.connection is None:
            try:
                self.connection = await aiosqlite.connect(self.db_path)
                self.connection.row_factory = aiosqlite.Row
                await self.connection.execute("PRAGMA foreign_keys = ON")
                await self.connection.execute("PRAGMA journal_mode = WAL")
                await self.connection.commit()
            except aiosqlite.Error as e:
                self.connection = None
                raise StoreError(
                    f"Failed to open SQLite database: {e}", context={"db_path": self.db_path}
                ) from e
        return self.connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self.connect()
        for statement in SCHEMA:
            await conn.execute(statement)
        await conn.commit()
        logger.debug(f"SQLite store ready at {self.db_path}")

    async def close(self) -> None:
        """Close connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def health_check(self) -> bool:
        try:
            conn = await self.connect()
            cursor = await conn.execute("SELECT 1")
            return (await cursor.fetchone()) is not None
        except Exception as e:
            logger.error(f"SQLite health check failed: {e}")
            return False

    async def _fetchall(self, query: str, params: tuple | list = ()) -> list[aiosqlite.Row]:
        conn = await self.connect()
        cursor = await conn.execute(query, params)
        return list(await cursor.fetchall())

    async def _fetchone(self, query: str, params: tuple | list = ()) -> aiosqlite.Row | None:
        conn = await self.connect()
        cursor = await conn.execute(query, params)
        return await cursor.fetchone()

    async def _write(self, query: str, params: tuple | list = ()) -> int:
        conn = await self.connect()
        cursor = await conn.execute(query, params)
        await conn.commit()
        return cursor.rowcount

    # ═══════════════════════════════════════════════════════════
    # NODE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_node(self, node: MemoryNode) -> MemoryNode:
        await self._write(
            """
            INSERT INTO nodes (id, content, embedding, node_type, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                node.id,
                node.content,
                json.dumps(node.embedding) if node.embedding else None,
                node.node_type,
                json.dumps(node.metadata),
                node.created_at.isoformat(),
                node.updated_at.isoformat(),
            ),
        )
        return node

    async def get_node(self, node_id: str) -> MemoryNode | None:
        row = await self._fetchone("SELECT * FROM nodes WHERE id = ?", (node_id,))
        return self._row_to_node(row) if row else None

    async def get_nodes(self, node_ids: list[str]) -> list[MemoryNode]:
        if not node_ids:
            return []
        unique_ids = list(dict.fromkeys(node_ids))
        rows = await self._fetchall(
            f"SELECT * FROM nodes WHERE id IN ({_placeholders(unique_ids)})", unique_ids
        )
        by_id = {row["id"]: self._row_to_node(row) for row in rows}
        return [by_id[node_id] for node_id in unique_ids if node_id in by_id]

    async def get_all_nodes(self, node_types: list[str] | None = None) -> list[MemoryNode]:
        query = "SELECT * FROM nodes"
        params: list[Any] = []
        if node_types:
            query += f" WHERE node_type IN ({_placeholders(node_types)})"
            params.extend(node_types)
        query += " ORDER BY created_at, rowid"
        return [self._row_to_node(row) for row in await self._fetchall(query, params)]

    async def update_node(self, node: MemoryNode) -> MemoryNode:
        node.updated_at = datetime.now()
        await self._write(
            """
            UPDATE nodes SET content = ?, embedding = ?, node_type = ?, metadata = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                node.content,
                json.dumps(node.embedding) if node.embedding else None,
                node.node_type,
                json.dumps(node.metadata),
                node.updated_at.isoformat(),
                node.id,
            ),
        )
        return node

    async def delete_node(self, node_id: str) -> bool:
        return await self._write("DELETE FROM nodes WHERE id = ?", (node_id,)) > 0

    async def delete_nodes(self, node_ids: list[str]) -> int:
        if not node_ids:
            return 0
        return await self._write(
            f"DELETE FROM nodes WHERE id IN ({_placeholders(node_ids)})", list(node_ids)
        )

    async def find_node_by_content_and_type(self, content: str, node_type: str) -> MemoryNode | None:
        row = await self._fetchone(
            "SELECT * FROM nodes WHERE content = ? AND node_type = ? ORDER BY created_at LIMIT 1",
            (content, node_type),
        )
        return self._row_to_node(row) if row else None

    async def search_by_similarity(
        self,
        embedding: list[float],
        limit: int = 10,
        min_score: float = 0.0,
        node_types: list[str] | None = None,
    ) -> list[SearchResult]:
        if not embedding or limit <= 0:
            return []

        query = "SELECT * FROM nodes WHERE embedding IS NOT NULL"
        params: list[Any] = []
        if node_types:
            query += f" AND node_type IN ({_placeholders(node_types)})"
            params.extend(node_types)

        nodes = [self._row_to_node(row) for row in await self._fetchall(query, params)]
        # Vectors from another embedding model cannot be compared
        nodes = [node for node in nodes if node.embedding and len(node.embedding) == len(embedding)]
        if not nodes:
            return []

        scores = batch_cosine_similarity(embedding, [node.embedding for node in nodes])
        ranked = sorted(
            (
                SearchResult(node=node, score=score)
                for node, score in zip(nodes, scores)
                if score >= min_score
            ),
            key=lambda result: result.score,
            reverse=True,
        )
        return ranked[:limit]

    async def count_nodes(self, node_type: str | None = None) -> int:
        if node_type:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM nodes WHERE node_type = ?", (node_type,)
            )
        else:
            row = await self._fetchone("SELECT COUNT(*) FROM nodes")
        return row[0] if row else 0

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIP OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_relationship(self, relationship: MemoryRelationship) -> MemoryRelationship:
        if relationship.source_id == relationship.target_id:
            raise ValidationError(
                "Self-loop relationships are not allowed",
                context={"node_id": relationship.source_id},
            )

        try:
            await self._write(
                """
                INSERT INTO relationships (
                    id, source_id, target_id, relationship_type, weight, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    relationship.id,
                    relationship.source_id,
                    relationship.target_id,
                    relationship.relationship_type,
                    relationship.weight,
                    json.dumps(relationship.metadata),
                    relationship.created_at.isoformat(),
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise StoreError(
                f"Cannot create relationship: {e}",
                context={
                    "source_id": relationship.source_id,
                    "target_id": relationship.target_id,
                },
            ) from e
        return relationship

    async def get_relationship(self, relationship_id: str) -> MemoryRelationship | None:
        row = await self._fetchone("SELECT * FROM relationships WHERE id = ?", (relationship_id,))
        return self._row_to_relationship(row) if row else None

    async def get_relationships_for_node(
        self, node_id: str, relationship_types: list[str] | None = None
    ) -> list[MemoryRelationship]:
        query = "SELECT * FROM relationships WHERE (source_id = ? OR target_id = ?)"
        params: list[Any] = [node_id, node_id]
        if relationship_types:
            query += f" AND relationship_type IN ({_placeholders(relationship_types)})"
            params.extend(relationship_types)
        query += " ORDER BY created_at, rowid"
        return [self._row_to_relationship(row) for row in await self._fetchall(query, params)]

    async def get_relationships_among(
        self, node_ids: list[str], relationship_types: list[str] | None = None
    ) -> list[MemoryRelationship]:
        if not node_ids:
            return []
        ids = list(dict.fromkeys(node_ids))
        query = (
            f"SELECT * FROM relationships WHERE source_id IN ({_placeholders(ids)})"
            f" AND target_id IN ({_placeholders(ids)})"
        )
        params: list[Any] = [*ids, *ids]
        if relationship_types:
            query += f" AND relationship_type IN ({_placeholders(relationship_types)})"
            params.extend(relationship_types)
        query += " ORDER BY created_at, rowid"
        return [self._row_to_relationship(row) for row in await self._fetchall(query, params)]

    async def relationship_exists(
        self, source_id: str, target_id: str, relationship_type: str, either_direction: bool = False
    ) -> bool:
        if either_direction:
            row = await self._fetchone(
                """
                SELECT 1 FROM relationships
                WHERE relationship_type = ?
                  AND ((source_id = ? AND target_id = ?) OR (source_id = ? AND target_id = ?))
                LIMIT 1
                """,
                (relationship_type, source_id, target_id, target_id, source_id),
            )
        else:
            row = await self._fetchone(
                """
                SELECT 1 FROM relationships
                WHERE relationship_type = ? AND source_id = ? AND target_id = ?
                LIMIT 1
                """,
                (relationship_type, source_id, target_id),
            )
        return row is not None

    async def delete_relationship(self, relationship_id: str) -> bool:
        return await self._write("DELETE FROM relationships WHERE id = ?", (relationship_id,)) > 0

    async def count_relationships(self, relationship_type: str | None = None) -> int:
        if relationship_type:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM relationships WHERE relationship_type = ?",
                (relationship_type,),
            )
        else:
            row = await self._fetchone("SELECT COUNT(*) FROM relationships")
        return row[0] if row else 0

    # ═══════════════════════════════════════════════════════════
    # SESSION OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_session(self, session: MemorySession) -> MemorySession:
        await self._write(
            """
            INSERT OR IGNORE INTO sessions (id, session_name, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.session_name,
                json.dumps(session.metadata),
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
            ),
        )
        return await self.get_session(session.id) or session

    async def get_session(self, session_id: str) -> MemorySession | None:
        row = await self._fetchone("SELECT * FROM sessions WHERE id = ?", (session_id,))
        if not row:
            return None
        return MemorySession(
            id=row["id"],
            session_name=row["session_name"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def add_node_to_session(self, session_id: str, node_id: str) -> None:
        conn = await self.connect()
        now = datetime.now().isoformat()
        await conn.execute(
            """
            INSERT OR IGNORE INTO sessions (id, session_name, metadata, created_at, updated_at)
            VALUES (?, NULL, '{}', ?, ?)
            """,
            (session_id, now, now),
        )
        try:
            await conn.execute(
                "INSERT OR IGNORE INTO session_nodes (session_id, node_id, added_at) VALUES (?, ?, ?)",
                (session_id, node_id, now),
            )
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            raise StoreError(
                f"Cannot add node to session: {e}",
                context={"session_id": session_id, "node_id": node_id},
            ) from e
        await conn.commit()

    async def get_nodes_in_session(
        self,
        session_id: str,
        node_types: list[str] | None = None,
        limit: int | None = None,
    ) -> list[MemoryNode]:
        query = """
            SELECT n.* FROM nodes n
            JOIN session_nodes sn ON sn.node_id = n.id
            WHERE sn.session_id = ?
        """
        params: list[Any] = [session_id]
        if node_types:
            query += f" AND n.node_type IN ({_placeholders(node_types)})"
            params.extend(node_types)
        query += " ORDER BY sn.added_at DESC, sn.rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [self._row_to_node(row) for row in await self._fetchall(query, params)]

    async def get_session_node_ids(self, session_id: str) -> set[str]:
        rows = await self._fetchall(
            "SELECT node_id FROM session_nodes WHERE session_id = ?", (session_id,)
        )
        return {row["node_id"] for row in rows}

    # ═══════════════════════════════════════════════════════════
    # CHUNK OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_chunk(self, chunk: MemoryChunk) -> MemoryChunk:
        await self._write(
            """
            INSERT INTO chunks (
                id, content, chunk_index, source_identifier, metadata, processed, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.content,
                chunk.chunk_index,
                chunk.source_identifier,
                json.dumps(chunk.metadata),
                int(chunk.processed),
                chunk.created_at.isoformat(),
            ),
        )
        return chunk

    async def get_chunk(self, chunk_id: str) -> MemoryChunk | None:
        row = await self._fetchone("SELECT * FROM chunks WHERE id = ?", (chunk_id,))
        return self._row_to_chunk(row) if row else None

    def _unprocessed_filter(self, session_id: str | None) -> tuple[str, list[Any]]:
        clause = "processed = 0"
        params: list[Any] = []
        if session_id is not None:
            clause += " AND json_extract(metadata, '$.session_id') = ?"
            params.append(session_id)
        return clause, params

    async def get_unprocessed_chunks(
        self, session_id: str | None = None, limit: int | None = None
    ) -> list[MemoryChunk]:
        clause, params = self._unprocessed_filter(session_id)
        query = f"SELECT * FROM chunks WHERE {clause} ORDER BY rowid"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [self._row_to_chunk(row) for row in await self._fetchall(query, params)]

    async def count_unprocessed_chunks(self, session_id: str | None = None) -> int:
        clause, params = self._unprocessed_filter(session_id)
        row = await self._fetchone(f"SELECT COUNT(*) FROM chunks WHERE {clause}", params)
        return row[0] if row else 0

    async def claim_unprocessed_chunks(
        self,
        claim_id: str,
        session_id: str | None = None,
        limit: int = 10,
        claim_timeout: float = 300.0,
    ) -> list[MemoryChunk]:
        now = time.time()
        clause, params = self._unprocessed_filter(session_id)

        # Single statement, so two runs can never claim the same row
        await self._write(
            f"""
            UPDATE chunks SET claimed_by = ?, claimed_at = ?
            WHERE id IN (
                SELECT id FROM chunks
                WHERE {clause} AND (claimed_by IS NULL OR claimed_at < ?)
                ORDER BY rowid
                LIMIT ?
            )
            """,
            [claim_id, now, *params, now - claim_timeout, limit],
        )

        rows = await self._fetchall(
            "SELECT * FROM chunks WHERE claimed_by = ? AND processed = 0 ORDER BY rowid",
            (claim_id,),
        )
        return [self._row_to_chunk(row) for row in rows]

    async def release_chunks(self, chunk_ids: list[str]) -> None:
        if not chunk_ids:
            return
        await self._write(
            f"UPDATE chunks SET claimed_by = NULL, claimed_at = NULL"
            f" WHERE id IN ({_placeholders(chunk_ids)}) AND processed = 0",
            list(chunk_ids),
        )

    async def mark_chunk_processed(self, chunk_id: str) -> None:
        await self._write(
            "UPDATE chunks SET processed = 1, claimed_by = NULL, claimed_at = NULL WHERE id = ?",
            (chunk_id,),
        )

    # ═══════════════════════════════════════════════════════════
    # ROW CONVERSION
    # ═══════════════════════════════════════════════════════════

    def _row_to_node(self, row: aiosqlite.Row) -> MemoryNode:
        return MemoryNode(
            id=row["id"],
            content=row["content"],
            embedding=json.loads(row["embedding"]) if row["embedding"] else None,
            node_type=row["node_type"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_relationship(self, row: aiosqlite.Row) -> MemoryRelationship:
        return MemoryRelationship(
            id=row["id"],
            source_id=row["source_id"],
            target_id=row["target_id"],
            relationship_type=row["relationship_type"],
            weight=row["weight"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_chunk(self, row: aiosqlite.Row) -> MemoryChunk:
        return MemoryChunk(
            id=row["id"],
            content=row["content"],
            chunk_index=row["chunk_index"],
            source_identifier=row["source_identifier"],
            metadata=json.loads(row["metadata"] or "{}"),
            processed=bool(row["processed"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
