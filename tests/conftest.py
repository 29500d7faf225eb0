"""Shared pytest fixtures for the knowledge-rag test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.retrieval import IndexRecord, QueryResult
from knowledge_rag.services.ingestion.chunker import TextChunker
from knowledge_rag.services.ingestion.connectors import build_connectors
from knowledge_rag.services.ingestion.orchestrator import IngestionOrchestrator
from knowledge_rag.services.vector_gateway import VectorStoreGateway

_WORD = re.compile(r"[a-z0-9]+")


# ---------------------------------------------------------------------------
# In-memory providers
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """Hashed bag-of-words vectors: texts sharing words land close together."""

    def __init__(self, dimension: int = 128) -> None:
        self._dimension = dimension
        self.embed_calls = 0
        self.embed_single_calls = 0

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.sha256(word.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls += 1
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.embed_single_calls += 1
        return self._vector(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


def _matches(metadata: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    if not filter:
        return True
    for key, condition in filter.items():
        value = metadata.get(key)
        if isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed store with cosine scoring and call counters."""

    def __init__(self) -> None:
        self.namespaces: dict[str, dict[str, IndexRecord]] = {}
        self.ensure_index_calls = 0
        self.upsert_calls = 0
        self.query_calls = 0
        self.fetch_calls = 0
        self.dimension: int | None = None

    @property
    def total_calls(self) -> int:
        return self.ensure_index_calls + self.upsert_calls + self.query_calls + self.fetch_calls

    async def ensure_index(self, name: str, dimension: int) -> None:
        self.ensure_index_calls += 1
        self.dimension = dimension

    async def upsert(self, namespace: str, records: list[IndexRecord]) -> int:
        self.upsert_calls += 1
        store = self.namespaces.setdefault(namespace, {})
        for record in records:
            store[record.id] = record
        return len(records)

    async def query(
        self,
        namespace: str,
        vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[QueryResult]:
        self.query_calls += 1
        scored = []
        for record in self.namespaces.get(namespace, {}).values():
            if not _matches(record.metadata, filter):
                continue
            score = sum(a * b for a, b in zip(vector, record.embedding))
            scored.append((max(0.0, min(1.0, score)), record))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            QueryResult(content=record.text, metadata=dict(record.metadata), score=score)
            for score, record in scored[:k]
        ]

    async def fetch_metadata(self, namespace: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        self.fetch_calls += 1
        store = self.namespaces.get(namespace, {})
        return {i: dict(store[i].metadata) for i in ids if i in store}

    async def count(self, namespace: str) -> int:
        return len(self.namespaces.get(namespace, {}))

    def get_provider_name(self) -> str:
        return "mock-store"

    def is_available(self) -> bool:
        return True

    def records(self, namespace: str = "test") -> list[IndexRecord]:
        return list(self.namespaces.get(namespace, {}).values())


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def gateway(embedding_provider: MockEmbeddingProvider, vector_store: MockVectorStore) -> VectorStoreGateway:
    return VectorStoreGateway(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        index_name="test-index",
        namespace="test",
    )


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(max_chars=1000, overlap_chars=200)


@pytest.fixture
def knowledge_root(tmp_path: Path) -> Path:
    root = tmp_path / "knowledge"
    root.mkdir()
    return root


@pytest.fixture
def orchestrator(
    knowledge_root: Path, chunker: TextChunker, gateway: VectorStoreGateway
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        connectors=build_connectors(knowledge_root, http_client=MagicMock()),
        chunker=chunker,
        gateway=gateway,
    )


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider; override ``complete`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="generated answer")
    return mock
