"""Abstract base class for vector-store service providers.

The store persists ``(id, embedding, text, metadata)`` records and answers
nearest-neighbour queries.  Records live in a named *index*, partitioned
into *namespaces*.

**Filter syntax** (the ``filter`` argument of :meth:`query`):

* ``{"category": "pos_integration"}`` -- equality.
* ``{"category": {"$in": ["a", "b"]}}`` -- membership.

Filters are evaluated by the store itself so top-``k`` is computed over
matching records only.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from knowledge_rag.models.retrieval import IndexRecord, QueryResult


# Concrete implementation: ChromaDBProvider (knowledge_rag/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by the gateway.

    All methods that touch the backend are async so network-backed stores
    do not block the event loop.
    """

    @abstractmethod
    async def ensure_index(self, name: str, dimension: int) -> None:
        """Create index *name* if absent; no-op when it already exists.

        Raises
        ------
        knowledge_rag.utils.errors.GatewayError
            If the index exists with a different dimension or the store
            is unreachable.
        """

    @abstractmethod
    async def upsert(self, namespace: str, records: list[IndexRecord]) -> int:
        """Insert or overwrite *records* by id and return how many were written."""

    @abstractmethod
    async def query(
        self,
        namespace: str,
        vector: list[float],
        k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[QueryResult]:
        """Return up to *k* records nearest to *vector*, best first.

        Parameters
        ----------
        namespace:
            Namespace to search within.
        vector:
            Query embedding.
        k:
            Maximum number of results.
        filter:
            Optional metadata filter (see module docstring).
        """

    @abstractmethod
    async def fetch_metadata(self, namespace: str, ids: list[str]) -> dict[str, dict[str, Any]]:
        """Return stored metadata keyed by id for whichever *ids* exist."""

    @abstractmethod
    async def count(self, namespace: str) -> int:
        """Return the number of records stored in *namespace*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the backing store can be reached."""
