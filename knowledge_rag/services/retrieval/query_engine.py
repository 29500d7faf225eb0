"""Read-only query façade over the vector store gateway."""

from __future__ import annotations

import structlog

from knowledge_rag.models.retrieval import QueryResult
from knowledge_rag.services.vector_gateway import VectorStoreGateway

logger = structlog.get_logger(logger_name=__name__)


class QueryEngine:
    """Callers query the index through here; only the gateway writes to it."""

    def __init__(self, gateway: VectorStoreGateway, default_limit: int = 5) -> None:
        self._gateway = gateway
        self._default_limit = default_limit

    @property
    def default_limit(self) -> int:
        return self._default_limit

    async def query(
        self,
        text: str,
        limit: int | None = None,
        categories: list[str] | None = None,
    ) -> list[QueryResult]:
        """Return up to *limit* chunks relevant to *text*, restricted to *categories*."""
        results = await self._gateway.similarity_search(
            text,
            k=limit or self._default_limit,
            category_filter=categories or None,
        )
        logger.debug("query_complete", query_length=len(text), results=len(results))
        return results
