"""Ingestion data models: source descriptors, documents, chunks, reports.

The flow through these types is::

    SourceDescriptor --(connector.enumerate)--> RawUnit
    RawUnit --(connector.fetch + extractor)--> Document
    Document --(TextChunker)--> Chunk --(VectorStoreGateway.upsert)--> index

An orchestrator run ends with an :class:`IngestionReport`.  All models are
frozen; a Document is either fully built or not built at all.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class SourceKind(str, Enum):
    """Kinds of source a connector exists for."""

    DIRECTORY = "directory"
    URL = "url"
    API = "api"
    DATABASE = "database"


class SourceStatus(str, Enum):
    """Outcome of one source within an orchestrator run."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_IMPLEMENTED = "not_implemented"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
class SourceDescriptor(BaseModel):
    """Where content comes from and which category label to stamp on it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: SourceKind
    location: str = Field(
        default="",
        validation_alias=AliasChoices("location", "url", "path"),
        description="Directory path or URL, depending on kind.",
    )
    category: str = Field(default="general", min_length=1)
    pattern: str | None = Field(default=None, description="Glob pattern for directory sources.")
    content_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content_type", "contentType"),
        description="Declared payload type (html, json, pdf, ...).",
    )
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default=None, validation_alias=AliasChoices("body", "data"))
    content_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content_path", "contentPath"),
        description="Dot path narrowing an API response, e.g. 'data.items'.",
    )
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _location_required(self) -> SourceDescriptor:
        if self.kind is not SourceKind.DATABASE and not self.location.strip():
            raise ValueError(f"{self.kind.value} source requires a location")
        return self

    @property
    def label(self) -> str:
        """Short identifier used in logs and reports."""
        return f"{self.kind.value}:{self.location}" if self.location else self.kind.value


class RawUnit(BaseModel):
    """One file, URL response or API response awaiting extraction."""

    model_config = ConfigDict(frozen=True)

    unit_id: str
    location: str
    declared_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Connector-private fetch parameters (method, headers, ...)."
    )


# ---------------------------------------------------------------------------
# Documents and chunks
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Provenance stamped on a Document and copied into each of its chunks.

    Extra keys are allowed so connectors can attach source-specific fields.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    source: str
    category: str
    type: str
    filename: str | None = None
    timestamp: str | None = None


class Document(BaseModel):
    """Normalized text extracted from one unit."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: DocumentMetadata

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()


def chunk_id_for(source: str, chunk_index: int) -> str:
    """Stable vector id for a chunk: re-ingesting a source overwrites, never duplicates."""
    return hashlib.sha256(f"{source}:{chunk_index}".encode("utf-8")).hexdigest()


class Chunk(BaseModel):
    """A bounded slice of a Document's text, the unit that is embedded."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: DocumentMetadata
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(gt=0)
    content_hash: str = Field(description="SHA-256 of the parent Document text.")

    @model_validator(mode="after")
    def _index_in_range(self) -> Chunk:
        if self.chunk_index >= self.total_chunks:
            raise ValueError("chunk_index must be smaller than total_chunks")
        return self

    @property
    def chunk_id(self) -> str:
        return chunk_id_for(self.metadata.source, self.chunk_index)

    def flat_metadata(self) -> dict[str, Any]:
        """Scalar-only metadata for the vector store (``None`` values dropped)."""
        flat: dict[str, Any] = {}
        for key, value in self.metadata.model_dump().items():
            if value is None:
                continue
            flat[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
        flat["chunk_index"] = self.chunk_index
        flat["total_chunks"] = self.total_chunks
        flat["content_hash"] = self.content_hash
        return flat


# ---------------------------------------------------------------------------
# Connector results (tagged variant)
# ---------------------------------------------------------------------------
class SourceError(BaseModel):
    """A recoverable failure recorded against one source or unit."""

    model_config = ConfigDict(frozen=True)

    source: str
    kind: str
    message: str
    unit_id: str | None = None


class ConnectorBatch(BaseModel):
    """Documents a connector produced, plus the units it had to skip."""

    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    documents: list[Document] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)


class ConnectorNotImplemented(BaseModel):
    """A source kind that is declared but not supported."""

    model_config = ConfigDict(frozen=True)

    status: Literal["not_implemented"] = "not_implemented"
    kind: str
    reason: str


ConnectorResult = ConnectorBatch | ConnectorNotImplemented


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class SourceReport(BaseModel):
    """Per-source line of an ingestion report."""

    model_config = ConfigDict(frozen=True)

    source: str
    category: str | None = None
    status: SourceStatus
    documents_ingested: int = 0
    chunks_ingested: int = 0
    documents_skipped: int = 0
    message: str | None = None


class IngestionReport(BaseModel):
    """Aggregate result of one orchestrator run."""

    model_config = ConfigDict(frozen=True)

    documents_ingested: int = 0
    chunks_ingested: int = 0
    documents_skipped: int = 0
    success: bool = True
    cancelled: bool = False
    per_source_errors: list[SourceError] = Field(default_factory=list)
    sources: list[SourceReport] = Field(default_factory=list)


class BootstrapResult(BaseModel):
    """Outcome of a bootstrap attempt."""

    model_config = ConfigDict(frozen=True)

    already_loaded: bool
    report: IngestionReport | None = None

    @property
    def success(self) -> bool:
        return self.already_loaded or (self.report is not None and self.report.success)

    @property
    def documents_ingested(self) -> int:
        return self.report.documents_ingested if self.report else 0

    @property
    def chunks_ingested(self) -> int:
        return self.report.chunks_ingested if self.report else 0
