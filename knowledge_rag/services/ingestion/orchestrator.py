"""Ingestion orchestrator: sources in, IngestionReport out.

For each source, in declaration order::

    connector.load -> Documents -> TextChunker -> VectorStoreGateway.upsert

Recoverable failures (a bad file, a dead URL, a missing directory) are
logged and recorded in the report while the run moves on to the next
source.  Structural failures, a :class:`GatewayError` or a malformed
descriptor raising :class:`ConfigurationError`, propagate and fail the run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import ValidationError

from knowledge_rag.models.ingestion import (
    ConnectorNotImplemented,
    Document,
    IngestionReport,
    SourceDescriptor,
    SourceError,
    SourceKind,
    SourceReport,
    SourceStatus,
)
from knowledge_rag.services.ingestion.chunker import TextChunker
from knowledge_rag.services.ingestion.connectors import SourceConnector
from knowledge_rag.services.vector_gateway import VectorStoreGateway
from knowledge_rag.utils.errors import ConfigurationError, ConnectorError

logger = structlog.get_logger(logger_name=__name__)

_KNOWN_KINDS = {kind.value for kind in SourceKind}


class IngestionOrchestrator:
    """Drives connectors, the chunker and the gateway for a list of sources.

    Parameters
    ----------
    connectors:
        One connector per supported :class:`SourceKind`.
    chunker:
        Splits each Document into Chunks.
    gateway:
        Embeds and stores Chunks.
    """

    def __init__(
        self,
        connectors: Mapping[SourceKind, SourceConnector],
        chunker: TextChunker,
        gateway: VectorStoreGateway,
    ) -> None:
        self._connectors = dict(connectors)
        self._chunker = chunker
        self._gateway = gateway

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        sources: Sequence[SourceDescriptor | Mapping[str, Any]],
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Ingest *sources* sequentially and return the aggregated report.

        Parameters
        ----------
        sources:
            Descriptors, or raw mappings straight from configuration.
        force:
            Re-embed documents even when an identical version is indexed.
        cancel_event:
            When set, sources not yet started are left out of the run.

        Raises
        ------
        ConfigurationError
            A source mapping is malformed.  Raised before any I/O.
        GatewayError
            The embedding service or vector store failed.
        """
        plan = [self._coerce(source) for source in sources]
        start = time.monotonic()

        documents_ingested = chunks_ingested = documents_skipped = 0
        errors: list[SourceError] = []
        reports: list[SourceReport] = []
        cancelled = False

        for label, descriptor in plan:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.warning("ingestion_cancelled", remaining=len(plan) - len(reports))
                break

            if descriptor is None:
                reports.append(
                    SourceReport(source=label, status=SourceStatus.SKIPPED, message="Unknown source kind")
                )
                continue

            report, source_errors = await self._run_source(descriptor, force)
            reports.append(report)
            errors.extend(source_errors)
            documents_ingested += report.documents_ingested
            chunks_ingested += report.chunks_ingested
            documents_skipped += report.documents_skipped

        logger.info(
            "ingestion_run_complete",
            sources=len(plan),
            documents=documents_ingested,
            chunks=chunks_ingested,
            skipped_documents=documents_skipped,
            errors=len(errors),
            cancelled=cancelled,
            time_s=round(time.monotonic() - start, 2),
        )
        return IngestionReport(
            documents_ingested=documents_ingested,
            chunks_ingested=chunks_ingested,
            documents_skipped=documents_skipped,
            success=True,
            cancelled=cancelled,
            per_source_errors=errors,
            sources=reports,
        )

    async def ingest_documents(
        self,
        documents: list[Document],
        source_label: str = "documents",
        force: bool = True,
    ) -> IngestionReport:
        """Chunk and store already-built Documents (no connector involved)."""
        ingested, chunks, skipped = await self._chunk_and_store(documents, force)
        report = SourceReport(
            source=source_label,
            status=SourceStatus.COMPLETED,
            documents_ingested=ingested,
            chunks_ingested=chunks,
            documents_skipped=skipped,
        )
        return IngestionReport(
            documents_ingested=ingested,
            chunks_ingested=chunks,
            documents_skipped=skipped,
            sources=[report],
        )

    async def aclose(self) -> None:
        for connector in self._connectors.values():
            await connector.aclose()

    # ------------------------------------------------------------------
    # Per-source processing
    # ------------------------------------------------------------------

    async def _run_source(
        self, descriptor: SourceDescriptor, force: bool
    ) -> tuple[SourceReport, list[SourceError]]:
        label = descriptor.label
        connector = self._connectors.get(descriptor.kind)
        if connector is None:
            logger.warning("no_connector_for_kind", source=label, kind=descriptor.kind.value)
            report = SourceReport(
                source=label,
                category=descriptor.category,
                status=SourceStatus.SKIPPED,
                message=f"No connector registered for {descriptor.kind.value}",
            )
            return report, []

        try:
            result = await connector.load(descriptor)
        except ConnectorError as exc:
            logger.error("source_failed", source=label, category=descriptor.category, error=str(exc))
            error = SourceError(source=label, kind=type(exc).__name__, message=exc.message)
            report = SourceReport(
                source=label,
                category=descriptor.category,
                status=SourceStatus.FAILED,
                message=exc.message,
            )
            return report, [error]

        if isinstance(result, ConnectorNotImplemented):
            logger.warning("source_not_implemented", source=label, reason=result.reason)
            report = SourceReport(
                source=label,
                category=descriptor.category,
                status=SourceStatus.NOT_IMPLEMENTED,
                message=result.reason,
            )
            return report, []

        ingested, chunks, skipped = await self._chunk_and_store(result.documents, force)
        status = SourceStatus.FAILED if result.errors and not result.documents else SourceStatus.COMPLETED
        logger.info(
            "source_ingested",
            source=label,
            category=descriptor.category,
            documents=ingested,
            chunks=chunks,
            skipped_documents=skipped,
            failed_units=len(result.errors),
        )
        report = SourceReport(
            source=label,
            category=descriptor.category,
            status=status,
            documents_ingested=ingested,
            chunks_ingested=chunks,
            documents_skipped=skipped,
            message=f"{len(result.errors)} unit(s) failed" if result.errors else None,
        )
        return report, list(result.errors)

    async def _chunk_and_store(self, documents: list[Document], force: bool) -> tuple[int, int, int]:
        """Chunk *documents*, drop unchanged ones unless *force*, upsert the rest.

        Returns ``(documents_ingested, chunks_written, documents_skipped)``.

        Upserts overwrite by chunk id only.  When a Document shrinks, chunks
        past its new length stay in the index until purged administratively.
        """
        chunked: list[tuple[Document, list]] = []
        for doc in documents:
            chunks = self._chunker.chunk(doc)
            if chunks:
                chunked.append((doc, chunks))
        if not chunked:
            return 0, 0, 0

        skipped = 0
        if not force:
            existing = await self._gateway.fetch_metadata([chunks[0].chunk_id for _, chunks in chunked])
            fresh = []
            for doc, chunks in chunked:
                stored = existing.get(chunks[0].chunk_id)
                if stored and stored.get("content_hash") == doc.content_hash:
                    skipped += 1
                    continue
                fresh.append((doc, chunks))
            chunked = fresh

        all_chunks = [chunk for _, chunks in chunked for chunk in chunks]
        written = await self._gateway.upsert(all_chunks)
        return len(chunked), written, skipped

    # ------------------------------------------------------------------
    # Descriptor coercion
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce(source: SourceDescriptor | Mapping[str, Any]) -> tuple[str, SourceDescriptor | None]:
        """Validate one source; unknown kinds come back as ``(label, None)``."""
        if isinstance(source, SourceDescriptor):
            return source.label, source
        if not isinstance(source, Mapping):
            raise ConfigurationError(message=f"Source must be a mapping, got {type(source).__name__}")

        kind = str(source.get("kind") or source.get("type") or "").strip().lower()
        label = str(source.get("location") or source.get("url") or source.get("path") or kind or "?")
        if kind not in _KNOWN_KINDS:
            logger.warning("unknown_source_kind", kind=kind or None, source=label)
            return f"{kind or 'unknown'}:{label}", None

        try:
            descriptor = SourceDescriptor.model_validate({**source, "kind": kind})
        except ValidationError as exc:
            raise ConfigurationError(message=f"Malformed {kind} source '{label}': {exc}") from exc
        return descriptor.label, descriptor
