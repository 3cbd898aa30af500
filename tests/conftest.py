"""
Shared test fixtures and deterministic provider fakes.

Nothing here talks to a real model server:
- BagOfWordsEmbedder: one axis per distinct word, 64 dimensions
- KeywordExtractor: capitalized words become entities, neighbours get related_to edges
- WordTokenizer: one token per whitespace-separated word
- ManualTimer: sleep replacement fired explicitly by the test
"""

import asyncio
import re

import pytest

from souvenir.config import ChunkingConfig, Config, EmbedderConfig, RetrievalConfig
from souvenir.core.chunking import create_chunker
from souvenir.core.embeddings.base import Embedder
from souvenir.core.extraction.base import Extractor
from souvenir.core.store.sqlite_store import SQLiteMemoryStore
from souvenir.core.tokenizer import Tokenizer
from souvenir.models.extraction import ExtractedEntity, ExtractedRelationship
from souvenir.models.memory import MemoryNode
from souvenir.services.memory_engine import MemoryEngine
from souvenir.utils.exceptions import EmbeddingError, ValidationError
from souvenir.utils.id_generator import generate_node_id

EMBEDDING_DIMENSION = 64


class BagOfWordsEmbedder(Embedder):
    """
    Deterministic embedder: every distinct lowercase word gets its own axis.

    Axes are assigned in first-seen order per instance, so word collisions
    only start past ``dimension`` distinct words.
    """

    def __init__(self, dimension: int = EMBEDDING_DIMENSION, fail_on: str | None = None):
        self._dimension = dimension
        self.fail_on = fail_on
        self.vocabulary: dict[str, int] = {}
        self.calls: list[str] = []
        self.closed = False

    async def embed(self, text: str, **kwargs) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError(f"Embedding backend rejected: {text[:20]}")

        vector = [0.0] * self._dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            axis = self.vocabulary.setdefault(word, len(self.vocabulary))
            vector[axis % self._dimension] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    async def close(self):
        self.closed = True


class KeywordExtractor(Extractor):
    """Capitalized words are location entities; consecutive entities are related."""

    def __init__(self):
        self.entity_calls = 0
        self.summaries: list[str | list[str]] = []
        self.closed = False

    async def extract_entities(self, text, prompt=None):
        self.entity_calls += 1
        names: list[str] = []
        for word in re.findall(r"\b[A-Z][a-z]+\b", text):
            if word not in names:
                names.append(word)
        return [ExtractedEntity(text=name, type="location") for name in names]

    async def extract_relationships(self, text, entities, prompt=None):
        return [
            ExtractedRelationship(source=a.text, target=b.text, type="related_to", weight=0.9)
            for a, b in zip(entities, entities[1:])
        ]

    async def summarize(self, text, max_length=200):
        self.summaries.append(text)
        if isinstance(text, list):
            text = " ".join(text)
        return text[:max_length]

    async def close(self):
        self.closed = True


class WordTokenizer(Tokenizer):
    """One token per word (with its trailing whitespace)."""

    def tokenize(self, text: str) -> list[str]:
        return re.findall(r"\S+\s*", text)

    def detokenize(self, tokens: list[str]) -> str:
        return "".join(tokens)

    def token_bytes(self, token: str) -> bytes:
        return token.encode("utf-8")

    def count_tokens(self, text: str) -> int:
        return len(self.tokenize(text))


class FailingTokenizer(Tokenizer):
    """Tokenizer whose backend is unavailable."""

    def tokenize(self, text: str):
        raise RuntimeError("encoding not available")

    def count_tokens(self, text: str) -> int:
        raise RuntimeError("encoding not available")


class ManualTimer:
    """
    Replacement for asyncio.sleep: sleepers block until ``fire()``.

    Cancelled sleepers unregister themselves.
    """

    def __init__(self):
        self.delays: list[float] = []
        self._waiters: list[asyncio.Event] = []

    @property
    def sleeping(self) -> int:
        return len(self._waiters)

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        event = asyncio.Event()
        self._waiters.append(event)
        try:
            await event.wait()
        finally:
            self._waiters.remove(event)

    async def fire(self) -> None:
        await settle()
        for event in list(self._waiters):
            event.set()
        await settle()

    async def settle(self) -> None:
        await settle()


async def settle(rounds: int = 10) -> None:
    """Give scheduled tasks a few event loop turns."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_node(
    content: str,
    node_type: str = "entity",
    embedding: list[float] | None = None,
    **metadata,
) -> MemoryNode:
    return MemoryNode(
        id=generate_node_id(),
        content=content,
        node_type=node_type,
        embedding=embedding,
        metadata=metadata,
    )


def make_config(**overrides) -> Config:
    """Test config: 64-dim embeddings, word chunks of 50, no score floor."""
    values = {
        "embedder": EmbedderConfig(dimension=EMBEDDING_DIMENSION),
        "chunking": ChunkingConfig(chunk_size=50, chunk_overlap=5),
        "retrieval": RetrievalConfig(min_relevance_score=0.0),
    }
    values.update(overrides)
    return Config(**values)


# Fixtures


@pytest.fixture
async def store(tmp_path):
    """Initialized SQLite store in a temporary directory."""
    sqlite_store = SQLiteMemoryStore(db_path=str(tmp_path / "memory.db"))
    await sqlite_store.initialize()
    yield sqlite_store
    await sqlite_store.close()


@pytest.fixture
def embedder():
    return BagOfWordsEmbedder()


@pytest.fixture
def extractor():
    return KeywordExtractor()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
async def engine(store, embedder, extractor, config):
    """Memory engine over the fakes with a default session."""
    memory = MemoryEngine(
        store=store,
        embedder=embedder,
        config=config,
        extractor=extractor,
        session_id="session_default",
        chunker=create_chunker(config.chunking, WordTokenizer()),
    )
    await memory.initialize()
    yield memory
    await memory.scheduler.shutdown()


@pytest.fixture
def word_tokenizer():
    return WordTokenizer()


@pytest.fixture
def failing_tokenizer():
    return FailingTokenizer()


@pytest.fixture
def node_factory():
    """Build MemoryNode instances: node_factory("Paris", "location", embedding=[...])."""
    return make_node


@pytest.fixture
def config_factory():
    """Build test configs with section overrides."""
    return make_config
