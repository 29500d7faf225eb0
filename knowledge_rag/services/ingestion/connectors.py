"""Source connectors: turn a SourceDescriptor into Documents.

Every connector follows the same two-step contract:

    enumerate(descriptor) -> [RawUnit]     which units exist
    fetch(unit)           -> bytes | str   the unit's raw payload

:meth:`SourceConnector.load` drives both, then extracts each payload.
Units are fetched and extracted concurrently under a semaphore; a unit that
fails is logged and recorded as a :class:`SourceError` while its siblings
carry on.  Only a failure of the whole source (e.g. a missing directory)
raises :class:`ConnectorError` out of ``load``.
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from knowledge_rag.models.ingestion import (
    ConnectorBatch,
    ConnectorNotImplemented,
    ConnectorResult,
    Document,
    DocumentMetadata,
    RawUnit,
    SourceDescriptor,
    SourceError,
    SourceKind,
)
from knowledge_rag.services.ingestion.extractors import BINARY_TYPES, extract, resolve_type
from knowledge_rag.utils.concurrency import DEFAULT_CONCURRENCY, throttled_gather
from knowledge_rag.utils.errors import ConnectorError, ExtractionError
from knowledge_rag.utils.text import normalize_text

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_PATTERN = "**/*.{md,txt,json,pdf,docx,csv,html}"

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_HEADERS = {"User-Agent": "knowledge-rag-ingestion/1.0"}

_BRACE_GROUP = re.compile(r"\{([^{}]*)\}")


class SourceConnector(ABC):
    """Base class for connectors; subclasses implement enumerate and fetch."""

    kind: SourceKind

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def enumerate(self, descriptor: SourceDescriptor) -> list[RawUnit]:
        """List the units *descriptor* points at.

        Raises
        ------
        ConnectorError
            The source as a whole is unusable.
        """

    @abstractmethod
    async def fetch(self, unit: RawUnit) -> Any:
        """Return the raw payload of *unit*."""

    async def to_documents(self, unit: RawUnit, payload: Any) -> list[Document]:
        """Extract one Document from *payload*; empty text yields none."""
        text = await asyncio.to_thread(extract, payload, unit.declared_type, unit.unit_id)
        if not text:
            logger.info("unit_empty_after_extraction", unit=unit.unit_id)
            return []
        return [Document(text=text, metadata=DocumentMetadata(**unit.metadata))]

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def load(self, descriptor: SourceDescriptor) -> ConnectorResult:
        """Enumerate, fetch and extract every unit of *descriptor*."""
        units = await self.enumerate(descriptor)
        if not units:
            return ConnectorBatch()

        semaphore = asyncio.Semaphore(self._concurrency)
        results = await throttled_gather(
            [self._load_unit(unit) for unit in units],
            semaphore=semaphore,
        )

        documents: list[Document] = []
        errors: list[SourceError] = []
        for unit, result in zip(units, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "unit_failed",
                    source=descriptor.label,
                    unit=unit.unit_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                errors.append(
                    SourceError(
                        source=descriptor.label,
                        kind=type(result).__name__,
                        message=str(result),
                        unit_id=unit.unit_id,
                    )
                )
            else:
                documents.extend(result)

        logger.info(
            "source_loaded",
            source=descriptor.label,
            units=len(units),
            documents=len(documents),
            failed_units=len(errors),
        )
        return ConnectorBatch(documents=documents, errors=errors)

    async def _load_unit(self, unit: RawUnit) -> list[Document]:
        payload = await self.fetch(unit)
        return await self.to_documents(unit, payload)

    async def aclose(self) -> None:
        """Release connector resources (HTTP clients)."""


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives, which ``Path.glob`` does not understand."""
    match = _BRACE_GROUP.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


class DirectoryConnector(SourceConnector):
    """Glob-matches files below a base directory; one unit per file."""

    kind = SourceKind.DIRECTORY

    def __init__(self, knowledge_root: str | Path, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        super().__init__(concurrency=concurrency)
        self._knowledge_root = Path(knowledge_root)

    def resolve_base(self, location: str) -> Path:
        """Absolute paths are kept; relative ones hang off the knowledge root."""
        path = Path(location)
        if path.is_absolute():
            return path
        return self._knowledge_root / location.removeprefix("./")

    async def enumerate(self, descriptor: SourceDescriptor) -> list[RawUnit]:
        base = self.resolve_base(descriptor.location)
        if not base.is_dir():
            raise ConnectorError(message=f"Directory not found: {base}", source=descriptor.label)

        pattern = descriptor.pattern or DEFAULT_PATTERN
        matches: set[Path] = set()
        for expanded in expand_braces(pattern):
            matches.update(p for p in base.glob(expanded) if p.is_file())

        if not matches:
            logger.warning("directory_no_matches", directory=str(base), pattern=pattern)
            return []

        units = []
        for path in sorted(matches):
            ext = path.suffix.lower().lstrip(".")
            units.append(
                RawUnit(
                    unit_id=str(path),
                    location=str(path),
                    declared_type=ext,
                    metadata={
                        "source": str(path),
                        "category": descriptor.category,
                        "filename": path.name,
                        "type": ext,
                    },
                )
            )
        logger.info("directory_enumerated", directory=str(base), files=len(units))
        return units

    async def fetch(self, unit: RawUnit) -> bytes:
        try:
            return await asyncio.to_thread(Path(unit.location).read_bytes)
        except OSError as exc:
            raise ConnectorError(message=f"Cannot read {unit.location}: {exc}", source=unit.unit_id) from exc


# ---------------------------------------------------------------------------
# HTTP-backed connectors
# ---------------------------------------------------------------------------

class _HttpConnector(SourceConnector):
    """Shared httpx client handling for URL and API connectors."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        super().__init__(concurrency=concurrency)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    async def _send(self, unit: RawUnit, method: str = "GET", **kwargs: Any) -> httpx.Response:
        headers = {**_DEFAULT_HEADERS, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, unit.location, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ConnectorError(message=f"Timeout fetching {unit.location}: {exc}", source=unit.unit_id) from exc
        except httpx.HTTPStatusError as exc:
            raise ConnectorError(
                message=f"HTTP {exc.response.status_code} for {unit.location}",
                source=unit.unit_id,
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectorError(message=f"HTTP error fetching {unit.location}: {exc}", source=unit.unit_id) from exc
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _type_from_url(url: str) -> str | None:
    suffix = Path(urlparse(url).path).suffix.lower().lstrip(".")
    return suffix if suffix and resolve_type(suffix) != "plain" else None


class UrlConnector(_HttpConnector):
    """A single URL; binary fetch for PDF/DOCX, text otherwise."""

    kind = SourceKind.URL

    async def enumerate(self, descriptor: SourceDescriptor) -> list[RawUnit]:
        declared = descriptor.content_type or _type_from_url(descriptor.location) or "html"
        return [
            RawUnit(
                unit_id=descriptor.location,
                location=descriptor.location,
                declared_type=declared,
                metadata={
                    "source": descriptor.location,
                    "category": descriptor.category,
                    "type": descriptor.content_type or "url",
                },
            )
        ]

    async def fetch(self, unit: RawUnit) -> bytes | str:
        response = await self._send(unit)
        if resolve_type(unit.declared_type) in BINARY_TYPES:
            return response.content
        return response.text


class ApiConnector(_HttpConnector):
    """One HTTP call; the (optionally narrowed) response becomes Documents."""

    kind = SourceKind.API

    async def enumerate(self, descriptor: SourceDescriptor) -> list[RawUnit]:
        return [
            RawUnit(
                unit_id=descriptor.location,
                location=descriptor.location,
                declared_type=descriptor.content_type or "json",
                metadata={
                    "source": descriptor.location,
                    "category": descriptor.category,
                    "type": descriptor.content_type or "api",
                },
                options={
                    "method": descriptor.method.upper(),
                    "headers": dict(descriptor.headers),
                    "body": descriptor.body,
                    "content_path": descriptor.content_path,
                },
            )
        ]

    async def fetch(self, unit: RawUnit) -> Any:
        kwargs: dict[str, Any] = {"headers": unit.options.get("headers") or {}}
        if unit.options.get("body") is not None:
            kwargs["json"] = unit.options["body"]
        response = await self._send(unit, unit.options.get("method", "GET"), **kwargs)
        try:
            return response.json()
        except ValueError:
            return response.text

    async def to_documents(self, unit: RawUnit, payload: Any) -> list[Document]:
        content_path = unit.options.get("content_path")
        content = payload
        if content_path:
            content = resolve_content_path(payload, content_path)
            if _is_empty(content):
                raise ConnectorError(
                    message=f"Content path {content_path} not found in API response",
                    source=unit.unit_id,
                )

        if isinstance(content, list):
            documents = []
            for index, item in enumerate(content):
                text = item if isinstance(item, str) else json.dumps(item, indent=2, ensure_ascii=False)
                text = normalize_text(text)
                if not text:
                    continue
                metadata = {**unit.metadata, "source": f"{unit.location}[{index}]"}
                documents.append(Document(text=text, metadata=DocumentMetadata(**metadata)))
            return documents

        declared = unit.declared_type if isinstance(content, (str, bytes)) else "json"
        text = await asyncio.to_thread(extract, content, declared, unit.unit_id)
        if not text:
            return []
        return [Document(text=text, metadata=DocumentMetadata(**unit.metadata))]


def resolve_content_path(payload: Any, path: str) -> Any:
    """Follow a dot path (``data.items.0.body``) through dicts and lists."""
    current = payload
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return None
        if current is None:
            return None
    return current


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0)


# ---------------------------------------------------------------------------
# Database (declared, unsupported)
# ---------------------------------------------------------------------------

class DatabaseConnector(SourceConnector):
    """Declared source kind without an implementation."""

    kind = SourceKind.DATABASE

    async def enumerate(self, descriptor: SourceDescriptor) -> list[RawUnit]:
        return []

    async def fetch(self, unit: RawUnit) -> Any:
        raise ExtractionError(message="Database ingestion not implemented", unit_id=unit.unit_id)

    async def load(self, descriptor: SourceDescriptor) -> ConnectorResult:
        logger.warning("database_source_not_implemented", source=descriptor.label)
        return ConnectorNotImplemented(kind=self.kind.value, reason="Database ingestion not implemented")


def build_connectors(
    knowledge_root: str | Path,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = _DEFAULT_TIMEOUT,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> dict[SourceKind, SourceConnector]:
    """Return one connector per supported source kind."""
    return {
        SourceKind.DIRECTORY: DirectoryConnector(knowledge_root, concurrency=concurrency),
        SourceKind.URL: UrlConnector(http_client, timeout=timeout, concurrency=concurrency),
        SourceKind.API: ApiConnector(http_client, timeout=timeout, concurrency=concurrency),
        SourceKind.DATABASE: DatabaseConnector(concurrency=concurrency),
    }
