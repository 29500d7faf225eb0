"""Vector store gateway: the single owner of index writes and searches.

Write path: chunk texts -> embedding provider -> ``upsert`` records into the
configured index and namespace, in slices of ``_EMBED_STORE_BATCH`` to keep
peak memory bounded.

Read path: embed the query once, then let the store run a top-``k`` search
with the category filter applied store-side, so a filtered query still
returns up to ``k`` matches.

The index is created lazily on first use.  Initialisation runs under an
``asyncio.Lock`` and the store's ``ensure_index`` is create-if-absent, so
concurrent first callers never create duplicates.  Every collaborator
failure surfaces as :class:`GatewayError`.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.ingestion import Chunk
from knowledge_rag.models.retrieval import IndexRecord, QueryResult
from knowledge_rag.utils.errors import ConfigurationError, GatewayError

logger = structlog.get_logger(logger_name=__name__)


class VectorStoreGateway:
    """Embeds and stores chunks; embeds queries and searches.

    Parameters
    ----------
    embedding_provider:
        Produces vectors for chunk and query text.
    vector_store:
        Persists records and answers nearest-neighbour queries.
    index_name:
        Index (collection) to create or open on first use.
    namespace:
        Logical partition inside the index for all reads and writes.
    """

    _EMBED_STORE_BATCH = 500

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        index_name: str = "knowledge-base",
        namespace: str = "default",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._index_name = index_name
        self._namespace = namespace
        self._ready = False
        self._init_lock = asyncio.Lock()

    @property
    def namespace(self) -> str:
        return self._namespace

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upsert(self, chunks: list[Chunk]) -> int:
        """Embed and store *chunks*; returns the number of records written."""
        if not chunks:
            return 0
        await self._ensure_ready()

        written = 0
        batch = self._EMBED_STORE_BATCH
        for i in range(0, len(chunks), batch):
            slice_chunks = chunks[i : i + batch]
            embeddings = await self._call(
                "embed", self._embedding_provider.embed([c.text for c in slice_chunks])
            )
            if len(embeddings) != len(slice_chunks):
                raise GatewayError(
                    message=f"Embedding count mismatch: {len(embeddings)} vectors for {len(slice_chunks)} chunks",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            records = [
                IndexRecord(
                    id=chunk.chunk_id,
                    embedding=list(vector),
                    text=chunk.text,
                    metadata=chunk.flat_metadata(),
                )
                for chunk, vector in zip(slice_chunks, embeddings)
            ]
            written += await self._call("upsert", self._vector_store.upsert(self._namespace, records))

        logger.info("gateway_upsert", namespace=self._namespace, chunks=written)
        return written

    async def similarity_search(
        self,
        query_text: str,
        k: int,
        category_filter: list[str] | None = None,
    ) -> list[QueryResult]:
        """Return the *k* chunks nearest to *query_text*, optionally by category."""
        if k <= 0:
            raise ConfigurationError(message=f"k must be positive, got {k}")
        await self._ensure_ready()

        vector = await self._call("embed_query", self._embedding_provider.embed_single(query_text))
        store_filter: dict[str, Any] | None = None
        if category_filter:
            store_filter = {"category": {"$in": sorted(set(category_filter))}}

        results = await self._call(
            "query", self._vector_store.query(self._namespace, vector, k, store_filter)
        )
        logger.info(
            "gateway_search",
            namespace=self._namespace,
            k=k,
            categories=category_filter or None,
            results=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    async def fetch_metadata(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        """Stored metadata of whichever *ids* are already indexed."""
        if not ids:
            return {}
        await self._ensure_ready()
        return await self._call("fetch", self._vector_store.fetch_metadata(self._namespace, ids))

    async def count(self) -> int:
        await self._ensure_ready()
        return await self._call("count", self._vector_store.count(self._namespace))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ensure_ready(self) -> None:
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            dimension = self._embedding_provider.get_dimension()
            await self._call("ensure_index", self._vector_store.ensure_index(self._index_name, dimension))
            self._ready = True
            logger.info("gateway_ready", index=self._index_name, namespace=self._namespace, dimension=dimension)

    async def _call(self, operation: str, awaitable: Any) -> Any:
        """Await *awaitable*, converting collaborator failures into GatewayError."""
        try:
            return await awaitable
        except GatewayError:
            raise
        except Exception as exc:
            logger.error("gateway_operation_failed", operation=operation, error=str(exc))
            raise GatewayError(message=f"Vector store gateway {operation} failed: {exc}") from exc
