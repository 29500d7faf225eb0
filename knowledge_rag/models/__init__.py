"""knowledge-rag domain models, re-exported for ``from knowledge_rag.models import ...``."""

from __future__ import annotations

from knowledge_rag.models.ingestion import (
    BootstrapResult,
    Chunk,
    ConnectorBatch,
    ConnectorNotImplemented,
    ConnectorResult,
    Document,
    DocumentMetadata,
    IngestionReport,
    RawUnit,
    SourceDescriptor,
    SourceError,
    SourceKind,
    SourceReport,
    SourceStatus,
    chunk_id_for,
)
from knowledge_rag.models.retrieval import FeedbackRecord, IndexRecord, QueryResult, TaskType

__all__ = [
    "BootstrapResult",
    "Chunk",
    "ConnectorBatch",
    "ConnectorNotImplemented",
    "ConnectorResult",
    "Document",
    "DocumentMetadata",
    "FeedbackRecord",
    "IndexRecord",
    "IngestionReport",
    "QueryResult",
    "RawUnit",
    "SourceDescriptor",
    "SourceError",
    "SourceKind",
    "SourceReport",
    "SourceStatus",
    "TaskType",
    "chunk_id_for",
]
