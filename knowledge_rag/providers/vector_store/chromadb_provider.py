"""ChromaDB vector store provider adapter.

Maps the index/namespace model onto ChromaDB: an *index* is a collection
(cosine space, dimension recorded in the collection metadata) and a
*namespace* is a ``namespace`` metadata field included in every ``where``
clause.  Runs embedded (``PersistentClient``) by default, or against a
Chroma server when ``chromadb_host`` is set.
"""

from __future__ import annotations

import os
from typing import Any

# Telemetry off before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.retrieval import IndexRecord, QueryResult
from knowledge_rag.utils.errors import GatewayError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Every record and query carries a pre-computed embedding, so Chroma must
    not load its default ONNX model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("knowledge-rag always supplies pre-computed embeddings")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB.

    Parameters
    ----------
    persist_directory:
        On-disk location for the embedded client.
    host, port:
        When *host* is non-empty, connect to a Chroma server instead.
    client:
        Pre-built Chroma client (tests pass an ephemeral or tmp-path client).
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        host: str = "",
        port: int = 8000,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        chroma_settings = chromadb.config.Settings(anonymized_telemetry=False)
        if client is not None:
            self._client = client
        elif host:
            self._client = chromadb.HttpClient(host=host, port=port, settings=chroma_settings)
        else:
            self._client = chromadb.PersistentClient(path=persist_directory, settings=chroma_settings)
        self._collection = None

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_index(self, name: str, dimension: int) -> None:
        """Open or create collection *name*; get_or_create is idempotent in Chroma."""
        try:
            try:
                collection = self._client.get_or_create_collection(
                    name=name,
                    metadata={"hnsw:space": "cosine", "dimension": dimension},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                # Collection persisted with a different embedding function.
                collection = self._client.get_or_create_collection(
                    name=name,
                    metadata={"hnsw:space": "cosine", "dimension": dimension},
                )
        except Exception as exc:
            raise GatewayError(
                message=f"Failed to open collection '{name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        stored_dim = self._stored_dimension(collection)
        if stored_dim is not None and stored_dim != dimension:
            raise GatewayError(
                message=(
                    f"Index '{name}' holds {stored_dim}-dim vectors but the embedding "
                    f"provider produces {dimension}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )

        self._collection = collection
        logger.info("chromadb_index_ready", index=name, dimension=dimension, count=collection.count())

    async def upsert(self, namespace: str, records: list[IndexRecord]) -> int:
        if not records:
            return 0
        collection = self._require_collection()
        try:
            collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.embedding for r in records],
                documents=[r.text for r in records],
                metadatas=[{**r.metadata, "namespace": namespace} for r in records],
            )
        except Exception as exc:
            raise GatewayError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_upsert", namespace=namespace, count=len(records))
        return len(records)

    async def query(
        self,
        namespace: str,
        vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[QueryResult]:
        collection = self._require_collection()
        try:
            if collection.count() == 0:
                return []
            results = collection.query(
                query_embeddings=[vector],
                n_results=k,
                where=self._build_where(namespace, filter),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise GatewayError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        query_results: list[QueryResult] = []
        for text, meta, distance in zip(documents, metadatas, distances, strict=True):
            metadata = {key: value for key, value in (meta or {}).items() if key != "namespace"}
            query_results.append(
                QueryResult(
                    content=text,
                    metadata=metadata,
                    score=max(0.0, min(1.0, 1.0 - distance)),
                )
            )
        logger.debug("chromadb_query", namespace=namespace, k=k, results=len(query_results))
        return query_results

    async def fetch_metadata(self, namespace: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        if not ids:
            return {}
        collection = self._require_collection()
        try:
            result = collection.get(ids=ids, where={"namespace": namespace}, include=["metadatas"])
        except Exception as exc:
            raise GatewayError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        metadatas = result.get("metadatas") or [{}] * len(result["ids"])
        return {record_id: dict(meta or {}) for record_id, meta in zip(result["ids"], metadatas)}

    async def count(self, namespace: str) -> int:
        collection = self._require_collection()
        try:
            result = collection.get(where={"namespace": namespace}, include=["metadatas"])
        except Exception as exc:
            raise GatewayError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(result["ids"])

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_collection(self):  # noqa: ANN202
        if self._collection is None:
            raise GatewayError(
                message="Index not initialised; call ensure_index() first",
                provider_name=self.get_provider_name(),
            )
        return self._collection

    @staticmethod
    def _stored_dimension(collection: Any) -> int | None:
        """Length of one stored vector, or ``None`` for an empty collection."""
        if collection.count() == 0:
            return None
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    @staticmethod
    def _build_where(namespace: str, filter: dict[str, Any] | None) -> dict[str, Any]:
        """Combine the namespace clause with caller filters into one Chroma ``where``."""
        clauses: list[dict[str, Any]] = [{"namespace": namespace}]
        for key, condition in (filter or {}).items():
            clauses.append({key: condition})
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
