"""Feedback loop: corrections and new facts flow back into the index.

``learn`` wraps text as a single Document and sends it down the same
chunk-and-upsert path as any other source, so feedback is retrievable
exactly like seeded content.  ``record_relevance`` only logs; retrieval
ranking is not adjusted from it.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from knowledge_rag.models.ingestion import Document, DocumentMetadata, IngestionReport
from knowledge_rag.models.retrieval import FeedbackRecord, QueryResult
from knowledge_rag.services.ingestion.orchestrator import IngestionOrchestrator
from knowledge_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FeedbackLoop:
    """Re-ingests user-supplied knowledge and logs relevance feedback."""

    def __init__(self, orchestrator: IngestionOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def learn(self, content: str, category: str, source: str) -> IngestionReport:
        """Ingest *content* as a ``feedback`` Document under *category*."""
        if not category:
            raise ConfigurationError(message="Feedback requires a category")

        document = Document(
            text=content.strip(),
            metadata=DocumentMetadata(
                source=source,
                category=category,
                type="feedback",
                timestamp=_now_iso(),
            ),
        )
        report = await self._orchestrator.ingest_documents([document], source_label=f"feedback:{source}")
        logger.info(
            "feedback_learned",
            source=source,
            category=category,
            chunks=report.chunks_ingested,
        )
        return report

    def record_relevance(
        self,
        prompt: str,
        retrieved_items: list[QueryResult],
        relevance_scores: list[int],
        feedback: str | None = None,
    ) -> FeedbackRecord:
        """Log per-item relevance scores (1-5) for a retrieval.

        Raises
        ------
        ConfigurationError
            Score count differs from item count, or a score is out of range.
        """
        if len(relevance_scores) != len(retrieved_items):
            raise ConfigurationError(
                message=f"Got {len(relevance_scores)} scores for {len(retrieved_items)} retrieved items"
            )
        if any(not 1 <= score <= 5 for score in relevance_scores):
            raise ConfigurationError(message="Relevance scores must be between 1 and 5")

        record = FeedbackRecord(
            prompt=prompt,
            retrieved_sources=[str(item.metadata.get("source", "Unknown")) for item in retrieved_items],
            relevance_scores=list(relevance_scores),
            feedback=feedback,
            timestamp=_now_iso(),
        )
        logger.info(
            "relevance_feedback",
            prompt_chars=len(prompt),
            sources=record.retrieved_sources,
            scores=record.relevance_scores,
            mean_score=round(sum(relevance_scores) / len(relevance_scores), 2) if relevance_scores else None,
            feedback=feedback,
        )
        return record
